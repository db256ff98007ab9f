"""
Re-entrant entry point: run the whole resource_version pipeline on one file.

Pages call it at the top level; the engine calls it again for every file a
page references, and for the virtual stylesheets it extracts from inline
``<style>`` blocks. Nothing is cached between calls: a file referenced twice
is processed twice.
"""

import logging
from typing import Optional, Tuple, Union

from .engine import ResourceVersion, Result
from .errors import CyclicReferenceError
from .options import Options
from .registry import AssetFile, FileRegistry

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")


class Runner:
    def __init__(self, registry: FileRegistry, options: Options, debug: bool = False):
        self.registry = registry
        self.options = options
        self.debug = debug

    def dbg(self, msg: str, *args) -> None:
        """Debug log gated by the plugin's ``debug`` option."""
        if not self.debug:
            return
        logger.debug("[resource_version] " + msg, *args)

    async def invoke(
        self,
        target: Union[str, AssetFile],
        origin_path: Optional[str] = None,
        referrer: Optional[str] = None,
        chain: Tuple[str, ...] = (),
    ) -> Result:
        """Process ``target`` (a path or an already registered file) and return its result.

        ``origin_path`` is the reference as the referring file wrote it, and
        becomes the base of the rewritten path. ``chain`` lists the files
        currently being processed above this call.
        """
        if isinstance(target, AssetFile):
            file = target
        else:
            path = self.registry.resolve(target, referrer)
            file = self.registry.get_file(path, referrer or "")

        if origin_path:
            file.props["origin_path"] = origin_path

        # Pages linked from other pages are versioned on their own pass.
        if chain and file.is_tpl:
            self.dbg("[invoke] leave page link %s", file.path)
            return Result()

        if file.path in chain:
            raise CyclicReferenceError(chain + (file.path,))

        engine = ResourceVersion(file, self, self.options, chain + (file.path,))
        result = await engine.run()
        engine.update(result)
        if result.ast is not None or result.content is not None:
            self.registry.commit(file)
        self.dbg("[invoke] %s -> %s", file.path, result.filepath)
        return result
