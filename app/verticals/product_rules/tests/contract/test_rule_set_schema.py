import json
from pathlib import Path

import jsonschema
import yaml

ROOT = Path(__file__).resolve().parents[2]
SCHEMAS = ROOT / "schemas"
RULE_SETS = ROOT / "rules" / "rule_sets"


def _load(p: Path):
    return json.loads(p.read_text(encoding="utf-8"))


def test_rule_set_schema_is_valid_jsonschema():
    schema = _load(SCHEMAS / "product_rule_set.schema.json")
    jsonschema.Draft202012Validator.check_schema(schema)


def test_shipped_rule_sets_validate():
    schema = _load(SCHEMAS / "product_rule_set.schema.json")
    files = sorted(RULE_SETS.glob("*.yaml"))
    assert files

    for f in files:
        doc = yaml.safe_load(f.read_text(encoding="utf-8"))
        jsonschema.validate(instance=doc, schema=schema)
