"""Minimal GitHub REST client for backfill reads."""

import httpx

from pulse.integrations.rate_limit import RateLimitCooldown


class GitHubClient:
    def __init__(
        self,
        token: str,
        cooldown: RateLimitCooldown,
        base_url: str = "https://api.github.com",
        http: httpx.AsyncClient | None = None,
    ):
        self.cooldown = cooldown
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        }
        self._base_url = base_url.rstrip("/")
        self._http = http

    async def list_recently_closed_pulls(self, org: str, repo: str, per_page: int = 100) -> list[dict]:
        """Closed PRs, most recently updated first (one page)."""
        params = {"state": "closed", "sort": "updated", "direction": "desc", "per_page": per_page}
        url = f"{self._base_url}/repos/{org}/{repo}/pulls"

        if self._http is not None:
            resp = await self._http.get(url, headers=self._headers, params=params)
        else:
            async with httpx.AsyncClient(timeout=30.0) as client:
                resp = await client.get(url, headers=self._headers, params=params)

        await self.cooldown.observe(resp.headers)
        resp.raise_for_status()
        return resp.json()
