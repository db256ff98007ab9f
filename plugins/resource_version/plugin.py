"""
An MkDocs plugin that rewrites resource references (images, fonts, scripts,
stylesheets) in the built site to cache-busted or content-addressed paths
"""

import asyncio
import fnmatch
import logging
from pathlib import Path
from typing import List, Optional

from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin

from .errors import ResourceVersionError
from .options import STRATEGIES, Options
from .registry import FileRegistry
from .runner import Runner

# Use MkDocs' recommended plugin logger namespace so debug logs appear only with `--verbose`.
logger = logging.getLogger(f"mkdocs.plugins.{__name__}")


class ResourceVersionPlugin(BasePlugin):
    """MkDocs plugin that versions every local resource referenced by the built pages.

    Configuration options (all optional):
    - type (str): `query` appends `?v=<hash>` to references, `rename` writes a copy of
      the file as `name_<hash>.ext` and points references at it.
    - length (int): Number of hash characters to use.
    - exclude (str|list): Glob patterns of references to leave untouched.
    - tag_attrs (dict): Extra tag -> attribute(s) holding resource paths, on top of
      the built-in ones (`img src`, `link href`, `script src`, ...).
    - include (str|list): Glob patterns (relative to site_dir) of pages to process.
    - debug (bool): Emit debug logs (visible with `mkdocs build -v`).
    """

    config_scheme = (
        ('type',      c.Choice(STRATEGIES, default="query")),
        ('length',    c.Type(int, default=5)),
        ('exclude',   c.Type((str, list), default=[])),
        ('tag_attrs', c.Type(dict, default={})),
        ('include',   c.Type((str, list), default=["*.html"])),
        ('debug',     c.Type(bool, default=False)),
    )

    def __init__(self):
        super().__init__()
        self.options: Optional[Options] = None

    # -------------------------------
    # Helpers
    # -------------------------------

    def _debug_enabled(self) -> bool:
        return bool(self.config.get("debug", False))

    def _dbg(self, msg: str, *args) -> None:
        if not self._debug_enabled():
            return
        logger.debug("[resource_version] " + msg, *args)

    def _include_patterns(self) -> List[str]:
        patterns = self.config.get("include") or []
        if isinstance(patterns, str):
            patterns = [patterns]
        return patterns

    def _pages(self, site_dir: Path) -> List[str]:
        """Relative paths of the pages to process, in a stable order."""
        patterns = self._include_patterns()
        pages: List[str] = []
        for path in sorted(site_dir.rglob("*")):
            if not path.is_file():
                continue
            rel = path.relative_to(site_dir).as_posix()
            if any(fnmatch.fnmatch(rel, p.lstrip("/")) for p in patterns):
                pages.append(rel)
        return pages

    def _resolve_options(self) -> Options:
        if self.options is None:
            self.options = Options.from_config(self.config)
        return self.options

    async def _process_pages(self, runner: Runner, pages: List[str]) -> None:
        async def process(page: str) -> None:
            try:
                await runner.invoke(page)
            except ResourceVersionError as e:
                logger.error("[resource_version] failed to process %s: %s", page, e.message)
                raise

        await asyncio.gather(*(process(page) for page in pages))

    # -------------------------------
    # MkDocs hooks
    # -------------------------------

    def on_config(self, config: MkDocsConfig) -> Optional[MkDocsConfig]:
        """Merge and validate the options once per build."""
        self.options = None
        self._resolve_options()
        self._dbg("[config] type=%s length=%d exclude=%s", self.options.type, self.options.length, ",".join(self.options.exclude))
        return config

    def on_post_build(self, *, config: MkDocsConfig) -> None:
        """After build: rewrite references in every page and write the results."""
        options = self._resolve_options()
        site_dir = Path(config["site_dir"])
        if not site_dir.is_dir():
            logger.warning("[resource_version] site_dir %s not found; skipping.", site_dir)
            return

        registry = FileRegistry(site_dir)
        runner = Runner(registry, options, debug=self._debug_enabled())
        pages = self._pages(registry.site_dir)
        self._dbg("[post_build] pages=%d", len(pages))

        try:
            asyncio.run(self._process_pages(runner, pages))
        except ResourceVersionError:
            raise
        except OSError as e:
            raise PluginError(f"[resource_version] {e}") from e

        written = registry.flush()
        logger.info(
            "[resource_version] versioned %d page(s), wrote %d file(s) (%d renamed artifact(s))",
            len(pages),
            written,
            len(registry.artifacts),
        )
