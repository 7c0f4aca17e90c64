"""
Tiered download of mod updates.

Tiers are tried in order: Nexus (needs an API key and a premium-capable
account), GitHub releases, then a manual fallback where the operator
downloads the archive in a browser. A tier that does not apply raises
TierUnavailableError and the next one is tried.
"""

import re
import time
import webbrowser
from pathlib import Path
from typing import Any, Callable, List, Optional
from urllib.parse import quote, urlparse

import requests
from loguru import logger
from rich.prompt import Prompt

from valley_sync.context import ExecutionContext
from valley_sync.core.output import log

from .catalog import UpdateCandidate
from .exceptions import DownloadError, TierUnavailableError

CHUNK_SIZE = 64 * 1024


def prompt_operator(message: str) -> None:
    Prompt.ask(message, default="", show_default=False)


def _get_json(session: Any, url: str, headers: dict, timeout: float) -> Any:
    response = session.get(url, headers=headers, timeout=timeout)
    if response.status_code in (401, 403):
        raise TierUnavailableError(f"{url} refused access ({response.status_code})")
    if response.status_code == 404:
        raise TierUnavailableError(f"{url} not found")
    response.raise_for_status()
    return response.json()


def stream_download(
    session: Any, url: str, dest_dir: Path, file_name: Optional[str], timeout: float
) -> Path:
    """Stream a URL into dest_dir and return the written file."""
    name = file_name or Path(urlparse(url).path).name or "download"
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / name
    try:
        with session.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(target, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
    except (requests.RequestException, OSError) as e:
        target.unlink(missing_ok=True)
        raise DownloadError(f"Download of {url} failed: {e}") from e
    return target


def choose_nexus_file(files: List[dict]) -> Optional[dict]:
    """Newest MAIN file by upload time, else the newest file of any category."""
    if not files:
        return None
    main = [f for f in files if str(f.get("category_name", "")).upper() == "MAIN"]
    pool = main or files
    return max(pool, key=lambda f: f.get("uploaded_timestamp") or 0)


# Shapes a well-formed but unexpected JSON payload fails with
MALFORMED = (KeyError, IndexError, TypeError, AttributeError, ValueError)


def download_from_nexus(
    ctx: ExecutionContext, candidate: UpdateCandidate, session: Any, dest_dir: Path
) -> Path:
    cfg = ctx.config.updates
    api_key = ctx.config.nexus_api_key
    if not api_key:
        raise TierUnavailableError("no Nexus API key configured")
    if candidate.nexus_id is None:
        raise TierUnavailableError("mod is not hosted on Nexus")

    headers = {"apikey": api_key, "Accept": "application/json"}
    base = f"{cfg.nexus_api_url}/games/{cfg.nexus_game_domain}/mods/{candidate.nexus_id}"
    try:
        listing = _get_json(session, f"{base}/files.json", headers, cfg.request_timeout_seconds)
        chosen = choose_nexus_file(listing.get("files") or [])
        if chosen is None:
            raise TierUnavailableError("Nexus lists no files")
        links = _get_json(
            session,
            f"{base}/files/{chosen['file_id']}/download_link.json",
            headers,
            cfg.request_timeout_seconds,
        )
        if not links:
            raise TierUnavailableError("Nexus returned no download link")
        url = links[0]["URI"]
        file_name = chosen.get("file_name")
    except requests.RequestException as e:
        raise DownloadError(f"Nexus request failed: {e}") from e
    except MALFORMED as e:
        raise DownloadError(f"Nexus returned an unexpected payload: {e!r}") from e

    if ctx.dry_run:
        log(f"[dry-run] would download {file_name} from Nexus")
        return dest_dir / (file_name or "nexus-download")
    return stream_download(session, url, dest_dir, file_name, cfg.request_timeout_seconds)


def download_from_github(
    ctx: ExecutionContext, candidate: UpdateCandidate, session: Any, dest_dir: Path
) -> Path:
    cfg = ctx.config.updates
    if not candidate.github_repo:
        raise TierUnavailableError("mod has no GitHub update key")

    url = f"{cfg.github_api_url}/repos/{candidate.github_repo}/releases/latest"
    pattern = re.compile(cfg.archive_pattern, re.IGNORECASE)
    try:
        release = _get_json(
            session, url, {"Accept": "application/vnd.github+json"}, cfg.request_timeout_seconds
        )
        assets = [a for a in release.get("assets") or [] if pattern.search(a.get("name", ""))]
        if not assets:
            raise TierUnavailableError("latest release has no archive asset")
        asset = max(assets, key=lambda a: a.get("updated_at") or "")
        asset_url, asset_name = asset["browser_download_url"], asset["name"]
    except requests.RequestException as e:
        raise DownloadError(f"GitHub request failed: {e}") from e
    except MALFORMED as e:
        raise DownloadError(f"GitHub returned an unexpected payload: {e!r}") from e

    if ctx.dry_run:
        log(f"[dry-run] would download {asset_name} from GitHub")
        return dest_dir / asset_name
    return stream_download(session, asset_url, dest_dir, asset_name, cfg.request_timeout_seconds)


def manual_page_url(ctx: ExecutionContext, candidate: UpdateCandidate) -> str:
    domain = ctx.config.updates.nexus_game_domain
    if candidate.page_url:
        return candidate.page_url
    if candidate.nexus_id is not None:
        return f"https://www.nexusmods.com/{domain}/mods/{candidate.nexus_id}"
    return f"https://www.nexusmods.com/{domain}/search/?gsearch={quote(candidate.name)}"


def newest_archive(folder: Path, pattern: str, since: float = 0.0) -> Optional[Path]:
    """Most recently modified archive in folder, touched at or after `since`."""
    if not folder.is_dir():
        return None
    regex = re.compile(pattern, re.IGNORECASE)
    archives = [
        p
        for p in folder.iterdir()
        if p.is_file() and regex.search(p.name) and p.stat().st_mtime >= since
    ]
    if not archives:
        return None
    return max(archives, key=lambda p: p.stat().st_mtime)


def download_manually(
    ctx: ExecutionContext,
    candidate: UpdateCandidate,
    open_browser: Callable[[str], Any] = webbrowser.open,
    wait_for_operator: Callable[[str], None] = prompt_operator,
    clock: Callable[[], float] = time.time,
) -> Path:
    holding = Path(ctx.config.paths.manual_downloads_dir)
    url = manual_page_url(ctx, candidate)

    if ctx.dry_run:
        log(f"[dry-run] would open {url} and wait for an archive in {holding}")
        raise TierUnavailableError("manual download skipped in dry-run")

    holding.mkdir(parents=True, exist_ok=True)
    started = clock() - 1
    log(f"Opening {url}", level="info")
    open_browser(url)
    wait_for_operator(
        f"Download {candidate.name} {candidate.target_version} into {holding}, then press Enter"
    )

    archive = newest_archive(holding, ctx.config.updates.archive_pattern, since=started)
    if archive is None:
        archive = newest_archive(holding, ctx.config.updates.archive_pattern)
    if archive is None:
        raise DownloadError(f"No archive found in {holding}")
    return archive


def download_update(
    ctx: ExecutionContext,
    candidate: UpdateCandidate,
    session: Any = requests,
    open_browser: Callable[[str], Any] = webbrowser.open,
    wait_for_operator: Callable[[str], None] = prompt_operator,
) -> Optional[Path]:
    """Run the tiers in order and return the downloaded archive, or None."""
    dest_dir = Path(ctx.config.paths.downloads_dir)
    tiers = [
        ("nexus", lambda: download_from_nexus(ctx, candidate, session, dest_dir)),
        ("github", lambda: download_from_github(ctx, candidate, session, dest_dir)),
        ("manual", lambda: download_manually(ctx, candidate, open_browser, wait_for_operator)),
    ]

    for tier, attempt in tiers:
        try:
            archive = attempt()
        except TierUnavailableError as e:
            logger.info(f"{candidate.name}: {tier} tier unavailable ({e})")
            continue
        except (DownloadError, OSError) as e:
            log(f"⚠ {candidate.name}: {tier} download failed: {e}", level="warning")
            continue
        logger.info(f"{candidate.name}: downloaded {archive.name} via {tier}")
        return archive
    return None
