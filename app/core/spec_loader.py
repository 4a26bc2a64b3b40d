"""Primus GFS specification loader.

Loads module, submodule, sub-submodule and micro-rule specification records
from the read-only specification store and memoizes them in an explicit
``SpecificationCache``. Specifications are deploy-time static content, so the
cache is never invalidated implicitly; ``clear()`` exists for tests and hot
reloads.

Layout of the store (``Settings.SPEC_ROOT``)::

    spec/modules/module_<id>.json
    spec/submodules/module_<id>/<code>.json
    spec/submodules/module_<id>/<code>/<sub-code>.json   (large submodules)
    micro_rules/<category>.json

Usage:
    from app.core.spec_loader import find_submodule_spec_by_name, load_module_spec

    module_spec = load_module_spec("5")
    submodule_spec = find_submodule_spec_by_name("5", "Pest Control Program")
"""

from __future__ import annotations

import re
from collections import Counter
from functools import lru_cache
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.config import get_settings
from app.core.errors import SpecificationNotFoundError
from app.core.logging import get_logger
from app.core.schemas_specification import (
    MicroRules,
    ModuleSpec,
    SubmoduleReference,
    SubmoduleSpec,
    SubSubmoduleSpec,
)

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

# e.g. "4.05.01" or "4.05.01a"
_SUB_SUBMODULE_CODE_RE = re.compile(r"(\d+\.\d{2}\.\d+[a-z]?)")

# Submodule name words shorter than this are ignored for keyword matching
_MIN_SIGNIFICANT_WORD = 4


class SpecificationCache:
    """In-process cache of parsed specification records.

    Keys are ``(kind, module_id, code)`` tuples. Values are frozen pydantic
    models, so sharing them across concurrent requests is safe.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str, str], Any] = {}

    def get(self, kind: str, module_id: str, code: str = "") -> Any | None:
        return self._entries.get((kind, module_id, code))

    def set(self, kind: str, module_id: str, code: str, value: Any) -> None:
        self._entries[(kind, module_id, code)] = value

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, int]:
        """Entry counts per record kind."""
        return dict(Counter(kind for kind, _, _ in self._entries))

    def __len__(self) -> int:
        return len(self._entries)


class SpecificationLoader:
    """Reads and caches specification records from a store root."""

    def __init__(self, root: Path, cache: SpecificationCache | None = None):
        self.root = Path(root)
        self.cache = cache if cache is not None else SpecificationCache()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _module_path(self, module_id: str) -> Path:
        return self.root / "spec" / "modules" / f"module_{module_id}.json"

    def _submodule_dir(self, module_id: str) -> Path:
        return self.root / "spec" / "submodules" / f"module_{module_id}"

    def _micro_rules_path(self, category: str) -> Path:
        return self.root / "micro_rules" / f"{category}.json"

    @staticmethod
    def _read(path: Path, model: type[T]) -> T:
        return model.model_validate_json(path.read_text(encoding="utf-8"))

    # ------------------------------------------------------------------
    # Module / submodule loaders
    # ------------------------------------------------------------------

    def load_module_spec(self, module_id: str) -> ModuleSpec:
        """
        Load module-level specification.

        Args:
            module_id: Module number (e.g. "1", "5")

        Returns:
            ModuleSpec with document structure template and submodule catalog

        Raises:
            SpecificationNotFoundError: If the record is missing or invalid
        """
        cached = self.cache.get("module", module_id)
        if cached is not None:
            return cached

        try:
            spec = self._read(self._module_path(module_id), ModuleSpec)
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to load module spec {module_id}: {e}")
            raise SpecificationNotFoundError(
                f"Module spec for module {module_id} not found or invalid",
                module_id=module_id,
            ) from e

        self.cache.set("module", module_id, "", spec)
        logger.info(f"Loaded module spec: {spec.module} - {spec.module_name}")
        return spec

    def load_sub_submodule_spec(
        self, module_id: str, submodule_code: str, sub_submodule_code: str
    ) -> SubSubmoduleSpec:
        """Load one sub-submodule (e.g. "4.05.01" under "4.05")."""
        cached = self.cache.get("sub_submodule", module_id, sub_submodule_code)
        if cached is not None:
            return cached

        path = self._submodule_dir(module_id) / submodule_code / f"{sub_submodule_code}.json"
        try:
            spec = self._read(path, SubSubmoduleSpec)
        except (OSError, ValidationError) as e:
            logger.error(
                f"Failed to load sub-submodule spec {module_id}/{submodule_code}/{sub_submodule_code}: {e}"
            )
            raise SpecificationNotFoundError(
                f"Sub-submodule spec for {module_id}/{submodule_code}/{sub_submodule_code} not found or invalid",
                module_id=module_id,
                code=sub_submodule_code,
            ) from e

        self.cache.set("sub_submodule", module_id, sub_submodule_code, spec)
        logger.info(f"Loaded sub-submodule spec: {spec.code} - {spec.title}")
        return spec

    def load_all_sub_submodules(self, module_id: str, submodule_code: str) -> list[SubSubmoduleSpec]:
        """Load every sub-submodule in a submodule folder, sorted by code."""
        folder = self._submodule_dir(module_id) / submodule_code
        if not folder.is_dir():
            return []

        specs: list[SubSubmoduleSpec] = []
        for path in sorted(folder.glob("*.json")):
            try:
                specs.append(self.load_sub_submodule_spec(module_id, submodule_code, path.stem))
            except SpecificationNotFoundError as e:
                logger.warning(f"Skipping sub-submodule {path.stem}: {e}")

        specs.sort(key=lambda s: s.code)
        return specs

    def load_submodule_spec(self, module_id: str, submodule_code: str) -> SubmoduleSpec:
        """
        Load a submodule specification.

        A submodule stored as a folder of sub-submodules is aggregated into a
        single virtual spec: requirements concatenated in code order and
        inject lists de-duplicated in first-seen order.

        Raises:
            SpecificationNotFoundError: If the record is missing or invalid
        """
        cached = self.cache.get("submodule", module_id, submodule_code)
        if cached is not None:
            return cached

        folder = self._submodule_dir(module_id) / submodule_code
        if folder.is_dir():
            spec = self._aggregate_sub_submodules(module_id, submodule_code)
        else:
            path = self._submodule_dir(module_id) / f"{submodule_code}.json"
            try:
                spec = self._read(path, SubmoduleSpec)
            except (OSError, ValidationError) as e:
                logger.error(f"Failed to load submodule spec {module_id}/{submodule_code}: {e}")
                raise SpecificationNotFoundError(
                    f"Submodule spec for {module_id}/{submodule_code} not found or invalid",
                    module_id=module_id,
                    code=submodule_code,
                ) from e
            logger.info(f"Loaded submodule spec: {spec.code} - {spec.title}")

        self.cache.set("submodule", module_id, submodule_code, spec)
        return spec

    def _aggregate_sub_submodules(self, module_id: str, submodule_code: str) -> SubmoduleSpec:
        parts = self.load_all_sub_submodules(module_id, submodule_code)
        if not parts:
            raise SpecificationNotFoundError(
                f"No sub-submodules found in folder for {submodule_code}",
                module_id=module_id,
                code=submodule_code,
            )

        module_spec = self.load_module_spec(module_id)
        ref = next((s for s in module_spec.submodules if s.code == submodule_code), None)
        if ref is None:
            raise SpecificationNotFoundError(
                f"Submodule {submodule_code} not found in module {module_id} configuration",
                module_id=module_id,
                code=submodule_code,
            )

        def _merged(attr: str) -> list[str]:
            return list(dict.fromkeys(item for part in parts for item in getattr(part, attr)))

        applies_to = _merged("applies_to")
        spec = SubmoduleSpec(
            code=submodule_code,
            title=ref.name,
            module_name=f"Module {module_id}: {module_spec.module_name}",
            description=f"Aggregated specification for {ref.name} with {len(parts)} sub-sections",
            applies_to=applies_to or [module_spec.scope or module_spec.module_name],
            requirements=[req for part in parts for req in part.requirements],
            micro_inject=ref.micro_inject,
            capa_inject=_merged("capa_inject"),
            traceability_inject=_merged("traceability_inject"),
            hazard_inject=_merged("hazard_inject"),
            records_inject=_merged("records_inject"),
            has_sub_submodules=True,
        )
        logger.info(
            f"Loaded aggregated submodule spec: {spec.code} with {len(spec.requirements)} "
            f"total requirements from {len(parts)} sub-submodules"
        )
        return spec

    # ------------------------------------------------------------------
    # Name resolution
    # ------------------------------------------------------------------

    def _try_load(self, module_id: str, code: str, reason: str) -> SubmoduleSpec | None:
        try:
            spec = self.load_submodule_spec(module_id, code)
        except SpecificationNotFoundError as e:
            logger.warning(f"Matched {code} by {reason} but failed to load it: {e}")
            return None
        logger.info(f"Resolved submodule {code} by {reason}")
        return spec

    def find_submodule_spec_by_name(
        self,
        module_id: str,
        free_text_name: str | None = None,
        explicit_code: str | None = None,
    ) -> SubmoduleSpec | None:
        """
        Resolve a submodule spec from a free-text document name and/or code.

        Resolution order, first match wins, ties broken by declaration order:
        1. exact code (explicit code, then codes mentioned in the free text;
           sub-submodule codes such as "4.05.01" resolve to that slice)
        2. declared alias appearing in the free text
        3. keyword match: a module compliance keyword for the submodule, or
           at least two significant words of the submodule name

        Args:
            module_id: Module number
            free_text_name: Document or submodule name as typed by a user
            explicit_code: Submodule code supplied by the caller

        Returns:
            SubmoduleSpec, or None if nothing matched

        Raises:
            SpecificationNotFoundError: If the module itself does not exist
        """
        module_spec = self.load_module_spec(module_id)
        search_text = f"{free_text_name or ''} {explicit_code or ''}".lower().strip()
        refs = module_spec.submodules

        # 1a. Sub-submodule code
        sub_match = _SUB_SUBMODULE_CODE_RE.search(search_text)
        if sub_match:
            sub_code = sub_match.group(1)
            parent_code = ".".join(sub_code.split(".")[:2])
            try:
                sub_spec = self.load_sub_submodule_spec(module_id, parent_code, sub_code)
                logger.info(f"Resolved sub-submodule {sub_code} (parent {parent_code})")
                return sub_spec.as_submodule_spec(module_id)
            except SpecificationNotFoundError:
                logger.info(f"No sub-submodule spec for {sub_code}, continuing with submodules")

        # 1b. Exact code
        if explicit_code:
            for ref in refs:
                if ref.code == explicit_code.strip():
                    spec = self._try_load(module_id, ref.code, "explicit code")
                    if spec:
                        return spec
        for ref in refs:
            if _mentions_code(search_text, ref.code):
                spec = self._try_load(module_id, ref.code, "code in name")
                if spec:
                    return spec

        # 2. Alias
        for ref in refs:
            if ref.alias and _mentions_alias(search_text, ref.alias):
                spec = self._try_load(module_id, ref.code, f"alias '{ref.alias}'")
                if spec:
                    return spec

        # 3. Keywords
        for ref in refs:
            if _keyword_match(search_text, ref, module_spec.compliance_keywords.get(ref.code, [])):
                spec = self._try_load(module_id, ref.code, "keyword match")
                if spec:
                    return spec

        logger.warning(
            f"No submodule spec found for module {module_id} with search: '{search_text}'. "
            f"Available: {[f'{s.code}: {s.name}' for s in refs]}"
        )
        return None

    # ------------------------------------------------------------------
    # Micro-rules
    # ------------------------------------------------------------------

    def load_micro_rules(self, category: str) -> MicroRules:
        """Load micro-rules for a category; a missing file yields an empty rule set."""
        cached = self.cache.get("micro_rules", "", category)
        if cached is not None:
            return cached

        try:
            rules = self._read(self._micro_rules_path(category), MicroRules)
        except (OSError, ValidationError) as e:
            logger.warning(f"Micro-rules for {category} not available, using spec requirements only: {e}")
            rules = MicroRules(category=category, rules={})

        self.cache.set("micro_rules", "", category, rules)
        return rules

    def get_relevant_micro_rules(self, categories: list[str]) -> dict[str, MicroRules]:
        """Non-empty micro-rule sets for the given categories, in the given order."""
        relevant: dict[str, MicroRules] = {}
        for category in categories:
            rules = self.load_micro_rules(category)
            if rules.rules:
                relevant[category] = rules
        return relevant


def _mentions_code(search_text: str, code: str) -> bool:
    # "5.1" must not match inside "5.12"
    return re.search(rf"(?<![\d.]){re.escape(code.lower())}(?!\d)", search_text) is not None


def _mentions_alias(search_text: str, alias: str) -> bool:
    alias_lower = alias.lower()
    return alias_lower in search_text or alias_lower.replace("_", " ") in search_text


def _keyword_match(search_text: str, ref: SubmoduleReference, keywords: list[str]) -> bool:
    if any(kw.lower() in search_text for kw in keywords if kw):
        return True
    name_words = [w for w in ref.name.lower().split() if len(w) >= _MIN_SIGNIFICANT_WORD]
    return sum(1 for w in name_words if w in search_text) >= 2


@lru_cache
def get_spec_loader() -> SpecificationLoader:
    """Process-scoped loader over the configured specification store."""
    return SpecificationLoader(get_settings().SPEC_ROOT)


def load_module_spec(module_id: str) -> ModuleSpec:
    return get_spec_loader().load_module_spec(module_id)


def load_submodule_spec(module_id: str, submodule_code: str) -> SubmoduleSpec:
    return get_spec_loader().load_submodule_spec(module_id, submodule_code)


def find_submodule_spec_by_name(
    module_id: str,
    free_text_name: str | None = None,
    explicit_code: str | None = None,
) -> SubmoduleSpec | None:
    return get_spec_loader().find_submodule_spec_by_name(module_id, free_text_name, explicit_code)
