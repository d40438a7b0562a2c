# launchpad/update/github.py
from __future__ import annotations

import io
import logging
import re
import zipfile
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from launchpad.http.client import HTTPError, request

logger = logging.getLogger(__name__)

__all__ = ["GithubRepo", "Release", "Asset", "User", "LAUNCHPAD_REPO", "fetchAssetArchive"]



JSON_TIMEOUT_MS = 10_000
DOWNLOAD_TIMEOUT_MS = 45_000

_USER_PATTERN = r"\w+(?:\-\w+)*"
_REPO_PATTERN = r"[\w\.\-]+"
PULL_PREFIX_RE = re.compile(rf"https://github\.com/({_USER_PATTERN})/({_REPO_PATTERN})/pull/")
COMPARE_PREFIX_RE = re.compile(rf"https://github\.com/({_USER_PATTERN})/({_REPO_PATTERN})/compare/")



class _GithubModel(BaseModel):
    # GitHub adds fields freely; only the ones below are kept
    model_config = ConfigDict(extra="ignore", populate_by_name=True)



class User(_GithubModel):
    name: str = Field(default="", alias="login")
    id: int = 0
    type: str | None = None
    url: str | None = None
    avatarUrl: str | None = Field(default=None, alias="avatar_url")
    htmlUrl: str | None = Field(default=None, alias="html_url")



class Asset(_GithubModel):
    name: str
    id: int = 0
    size: int = 0
    contentType: str | None = Field(default=None, alias="content_type")
    uploader: User | None = None
    created: datetime | None = Field(default=None, alias="created_at")
    updated: datetime | None = Field(default=None, alias="updated_at")
    downloadCount: int = Field(default=0, alias="download_count")
    label: str | None = None
    state: str | None = None
    url: str | None = None
    digest: str | None = None
    browserDownloadUrl: str = Field(alias="browser_download_url")



class Release(_GithubModel):
    name: str | None = None
    tagName: str = Field(alias="tag_name")
    branchName: str | None = Field(default=None, alias="target_commitish")
    id: int = 0
    description: str | None = Field(default=None, alias="body")
    author: User | None = None
    assets: list[Asset] = Field(default_factory=list)
    draft: bool = False
    prerelease: bool = False
    created: datetime | None = Field(default=None, alias="created_at")
    published: datetime | None = Field(default=None, alias="published_at")
    url: str | None = None
    htmlUrl: str | None = Field(default=None, alias="html_url")
    tarballUrl: str | None = Field(default=None, alias="tarball_url")
    zipballUrl: str | None = Field(default=None, alias="zipball_url")
    
    _repo: Any = PrivateAttr(default=None)
    
    @property
    def repo(self) -> GithubRepo | None:
        return self._repo
    
    def findAsset(self, name: str) -> Asset | None:
        return next((asset for asset in self.assets if asset.name == name), None)
    
    def _relativeName(self, owner: str, name: str) -> str:
        repo = self._repo
        if repo is not None and owner == repo.owner and name == repo.name:
            return ""
        if repo is not None and owner == repo.owner:
            return name
        return f"{owner}/{name}"
    
    def formatDescription(self) -> str:
        """Shorten PR and compare links, drop the heading and the trailing changelog link."""
        text = self.description or ""
        text = PULL_PREFIX_RE.sub(lambda m: f"{self._relativeName(m.group(1), m.group(2))}#", text)
        text = COMPARE_PREFIX_RE.sub(lambda m: self._relativeName(m.group(1), m.group(2)), text)
        lines = text.rstrip("vV0123456789.").replace("\r\n", "\n").split("\n")
        body = "".join(line + "\n" for line in lines[1:len(lines) - 2])
        return f"Whats Changed?\n{body}"



class GithubRepo:
    def __init__(self, owner: str, name: str):
        self.owner = owner
        self.name = name
    
    @property
    def webUrl(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"
    
    @property
    def releaseListUrl(self) -> str:
        return f"https://api.github.com/repos/{self.owner}/{self.name}/releases"
    
    @property
    def latestReleaseUrl(self) -> str:
        return f"{self.releaseListUrl}/latest"
    
    def tagReleaseUrl(self, tag: str) -> str:
        return f"{self.releaseListUrl}/tags/{tag}"
    
    async def _fetchJson(self, url: str) -> Any:
        """Returns the decoded body, or None when the request or decoding failed."""
        logger.debug("Fetching %s", url)
        try:
            res = await request("GET", url, headers={"Accept": "application/vnd.github+json"}, timeoutMs=JSON_TIMEOUT_MS)
        except HTTPError as err:
            logger.error("Failed to fetch %s: status %s", url, err.status)
            return None
        except Exception as err:
            logger.error("Failed to fetch %s: %s", url, err)
            return None
        if res["status"] >= 400:
            logger.error("Failed to fetch %s: status %s", url, res["status"])
            return None
        if "json" not in res:
            logger.error("Failed to fetch %s: response is not JSON", url)
            return None
        return res["json"]
    
    def _initRelease(self, raw: Any) -> Release | None:
        if raw is None:
            return None
        try:
            release = Release.model_validate(raw)
        except ValidationError as err:
            logger.error("Invalid release data from %s: %s", self.webUrl, err)
            return None
        release._repo = self
        return release
    
    async def fetchReleaseList(self) -> list[Release]:
        raw = await self._fetchJson(self.releaseListUrl)
        if not isinstance(raw, list):
            return []
        return [release for release in (self._initRelease(item) for item in raw) if release is not None]
    
    async def fetchLatestRelease(self) -> Release | None:
        return self._initRelease(await self._fetchJson(self.latestReleaseUrl))
    
    async def fetchTagRelease(self, tag: str) -> Release | None:
        return self._initRelease(await self._fetchJson(self.tagReleaseUrl(tag)))



LAUNCHPAD_REPO = GithubRepo("StationeersLaunchPad", "StationeersLaunchPad")



async def fetchAssetArchive(asset: Asset) -> zipfile.ZipFile | None:
    """Download a release asset into memory. None on any download failure."""
    logger.debug("Downloading %s", asset.name)
    try:
        res = await request("GET", asset.browserDownloadUrl, timeoutMs=DOWNLOAD_TIMEOUT_MS, retries=0)
    except Exception as err:
        logger.error("Failed to download %s: %s", asset.name, err)
        return None
    if res["status"] >= 400:
        logger.error("Failed to download %s: status %s", asset.name, res["status"])
        return None
    data: bytes = res["content"]
    logger.debug("Downloaded %d bytes", len(data))
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as err:
        logger.error("Downloaded %s is not a valid archive: %s", asset.name, err)
        return None
