from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog
import yaml
from jsonschema import Draft202012Validator

from ..rule_types.base import PricingRule

log = structlog.get_logger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "schemas" / "product_rule_set.schema.json"


class RuleSetError(ValueError):
    """Rule file unreadable, not valid against the schema, or inconsistent."""


# -----------------------
# Rule set
# -----------------------


@dataclass(frozen=True)
class RuleSet:
    rule_set_version: str
    rules: Tuple[PricingRule, ...]

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "RuleSet":
        _validate_schema(d)

        rules = tuple(PricingRule.from_dict(x) for x in d.get("rules") or [])
        rule_set_version = str(d.get("ruleSetVersion") or d.get("version") or "v1")

        ids = [r.id for r in rules]
        if len(ids) != len(set(ids)):
            seen, dups = set(), []
            for rid in ids:
                if rid in seen and rid not in dups:
                    dups.append(rid)
                seen.add(rid)
            raise RuleSetError(f"Duplicate rule ids in ruleset: {dups}")

        return RuleSet(rule_set_version=rule_set_version, rules=rules)

    def get(self, rule_id: str) -> Optional[PricingRule]:
        for r in self.rules:
            if r.id == rule_id:
                return r
        return None


_validator: Optional[Draft202012Validator] = None


def _validate_schema(d: Any) -> None:
    global _validator
    if _validator is None:
        with SCHEMA_PATH.open("r", encoding="utf-8") as f:
            _validator = Draft202012Validator(json.load(f))

    errors = sorted(_validator.iter_errors(d), key=lambda e: list(e.absolute_path))
    if errors:
        first = errors[0]
        where = "/".join(str(p) for p in first.absolute_path) or "<root>"
        raise RuleSetError(f"Rule set invalid at {where}: {first.message}")


def load_rule_set(path: str) -> RuleSet:
    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuleSetError(f"Rule set is not valid YAML: {e}") from e
    return RuleSet.from_dict(raw)


# -----------------------
# Rule source filter
# -----------------------


def filter_rules(
    rules: Iterable[PricingRule],
    *,
    product_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    service_type: Optional[str] = None,
) -> List[PricingRule]:
    """
    Caller-side pre-filter on the rule row columns, ordered by priority.
    With is_active=None inactive rules are kept (the evaluator skips them).
    """
    out = []
    for r in rules:
        if product_id is not None and r.product_id != product_id:
            continue
        if is_active is not None and r.is_active is not is_active:
            continue
        if service_type is not None and r.service_type != service_type:
            continue
        out.append(r)
    return sorted(out, key=lambda r: r.priority)


# -----------------------
# Hot reload
# -----------------------


@dataclass(frozen=True)
class LoadedRules:
    ruleset: RuleSet
    mtime_ns: int


class RuleLoader:
    """
    Hot reload of the rule set file (thread-safe).

    - Keeps last known-good rule set active
    - On each get(): checks mtime_ns; if changed -> reload + validate
    - If reload fails: logs the error and keeps the old rule set
    """

    def __init__(self, yaml_path: str):
        self.yaml_path = yaml_path
        self._lock = threading.Lock()
        self._loaded: Optional[LoadedRules] = None

        # eager initial load (fail-fast if missing or invalid)
        self._loaded = self._load_from_disk_or_raise()

    def get(self) -> LoadedRules:
        try:
            current_mtime = self._stat_mtime_ns()
        except FileNotFoundError:
            if self._loaded is None:
                raise
            log.warning("rule_set_missing", path=self.yaml_path, action="keep_previous")
            return self._loaded

        loaded = self._loaded
        if loaded is not None and current_mtime == loaded.mtime_ns:
            return loaded

        with self._lock:
            loaded = self._loaded
            # double-check after acquiring lock
            try:
                current_mtime = self._stat_mtime_ns()
            except FileNotFoundError:
                if loaded is None:
                    raise
                log.warning("rule_set_missing", path=self.yaml_path, action="keep_previous")
                return loaded

            if loaded is not None and current_mtime == loaded.mtime_ns:
                return loaded

            try:
                new_loaded = self._load_from_disk_or_raise(expected_mtime_ns=current_mtime)
            except (OSError, RuleSetError) as e:
                if loaded is None:
                    raise
                log.error("rule_set_reload_failed", path=self.yaml_path, error=str(e))
                return loaded

            self._loaded = new_loaded
            log.info(
                "rule_set_reloaded",
                path=self.yaml_path,
                version=new_loaded.ruleset.rule_set_version,
                rules=len(new_loaded.ruleset.rules),
            )
            return new_loaded

    def rules(self) -> Tuple[PricingRule, ...]:
        return self.get().ruleset.rules

    # -----------------
    # internals
    # -----------------

    def _stat_mtime_ns(self) -> int:
        return os.stat(self.yaml_path).st_mtime_ns

    def _load_from_disk_or_raise(self, expected_mtime_ns: Optional[int] = None) -> LoadedRules:
        if expected_mtime_ns is None:
            expected_mtime_ns = self._stat_mtime_ns()

        ruleset = load_rule_set(self.yaml_path)
        return LoadedRules(ruleset=ruleset, mtime_ns=expected_mtime_ns)
