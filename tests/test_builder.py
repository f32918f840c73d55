"""
tests/test_builder.py
Unit tests for entitygen.builder, entitygen.typemap and entitygen.validators.

Tests cover:
- Building the reference entities and their categorisation views
- Shape checks (struct, named fields, at least one field)
- Identifier rules (exactly one)
- Dangling projection / index / command references, lenient and strict
- Single-entity validators (names, filters, soft delete, commands, indexes)
- Document validators (relation targets, duplicate names and tables)
- Semantic type parsing and SQL / Python type mapping
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

import pytest

from entitygen.builder import ModelBuilder, build_entity
from entitygen.models import (
    EntityModel,
    FilterKind,
    GenerationConfig,
    IndexKind,
    RawEntity,
    TypeRef,
)
from entitygen.typemap import (
    is_orderable,
    is_textual,
    parse_type,
    python_default,
    python_type,
    sql_type,
)
from entitygen.validators import (
    EntityDefinitionError,
    ValidationResult,
    validate_document,
)


# ===========================================================================
# Helpers
# ===========================================================================


def _raw(data: Dict[str, Any]) -> RawEntity:
    return RawEntity.model_validate(data)


def _build(data: Dict[str, Any], strict: bool = False) -> EntityModel:
    return build_entity(_raw(data), strict_references=strict)


def _diagnostics(data: Dict[str, Any], strict: bool = False) -> ValidationResult:
    _, result = ModelBuilder(strict_references=strict).build_with_diagnostics(_raw(data))
    return result


def _failure(data: Dict[str, Any], strict: bool = False) -> EntityDefinitionError:
    with pytest.raises(EntityDefinitionError) as exc_info:
        _build(data, strict)
    return exc_info.value


def _names(fields: List[Any]) -> List[str]:
    return [f.name for f in fields]


def _with_field(data: Dict[str, Any], name: str, type_: str, **attrs: Any) -> Dict[str, Any]:
    data = copy.deepcopy(data)
    data["fields"].append({"name": name, "type": type_, "attributes": attrs})
    return data


# ===========================================================================
# Reference entities
# ===========================================================================


class TestReferenceEntities:
    """The example document builds cleanly."""

    def test_user_builds(self, user_dict: Dict[str, Any]) -> None:
        user = _build(user_dict)
        assert user.name == "User"
        assert user.full_table_name == "core.users"
        assert user.snake_name == "user"
        assert user.soft_delete is True
        assert user.id_field().name == "id"
        assert user.has_many == ("Post",)
        assert user.features.streams is True
        assert user.has_commands()

    def test_reference_entities_have_no_warnings(
        self, user_dict: Dict[str, Any], post_dict: Dict[str, Any], product_dict: Dict[str, Any]
    ) -> None:
        for data in (user_dict, post_dict, product_dict):
            result = _diagnostics(data)
            assert result.is_valid
            assert not result.warnings, result.format_report()

    def test_user_views(self, user_dict: Dict[str, Any]) -> None:
        user = _build(user_dict)
        assert _names(user.create_fields()) == ["email", "name", "age"]
        assert _names(user.update_fields()) == ["name", "age"]
        assert _names(user.response_fields()) == ["id", "email", "name", "age", "created_at"]
        assert _names(user.filter_fields()) == ["email", "name", "age", "created_at"]
        assert _names(user.auto_fields()) == ["created_at"]
        assert user.column_names() == ["id", "email", "name", "age", "created_at", "deleted_at"]

    def test_post_relations(self, post_dict: Dict[str, Any]) -> None:
        post = _build(post_dict)
        assert _names(post.relation_fields()) == ["user_id"]
        assert _names(post.indexed_fields()) == ["user_id"]
        assert post.get_field("user_id").storage.belongs_to == "User"

    def test_composite_index_resolved(self, user_dict: Dict[str, Any]) -> None:
        user = _build(user_dict)
        (index,) = user.indexes
        assert index.columns == ("email", "created_at")
        assert index.unique is True
        assert index.name_or_default(user.table) == "idx_users_email_created_at"

    def test_commands_resolved(self, user_dict: Dict[str, Any]) -> None:
        user = _build(user_dict)
        assert [c.name for c in user.commands] == ["Register", "Rename", "Deactivate"]
        assert user.commands[1].fields == ("name",)

    def test_sql_level_predicates(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        assert _build(data).has_backend()
        data["attributes"]["sql"] = "trait"
        trait = _build(data)
        assert trait.has_repository() and not trait.has_backend()
        data["attributes"]["sql"] = "none"
        assert not _build(data).has_repository()


class TestExposure:

    def test_skip_wins_over_everything(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(
            minimal_entity_dict,
            "secret",
            "String",
            field={"create": True, "update": True, "response": True, "skip": True},
        )
        tag = _build(data)
        assert "secret" not in _names(tag.create_fields())
        assert "secret" not in _names(tag.update_fields())
        assert "secret" not in _names(tag.response_fields())
        assert "secret" in tag.column_names()

    def test_identifier_always_in_response(self, minimal_entity_dict: Dict[str, Any]) -> None:
        tag = _build(minimal_entity_dict)
        assert _names(tag.response_fields()) == ["id"]
        assert tag.create_fields() == []

    def test_auto_fields_never_created(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(
            minimal_entity_dict, "stamp", "DateTime", auto=True, field=["create", "update"]
        )
        tag = _build(data)
        assert tag.create_fields() == []
        assert tag.update_fields() == []


# ===========================================================================
# Structural failures
# ===========================================================================


class TestShapeAndIdentifier:

    def test_enum_rejected(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = {**minimal_entity_dict, "kind": "enum"}
        assert "NOT_A_STRUCT" in _failure(data).result.codes

    def test_tuple_struct_rejected(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = {**minimal_entity_dict, "shape": "tuple"}
        assert "UNNAMED_FIELDS" in _failure(data).result.codes

    def test_positional_field_rejected(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["fields"].append({"type": "String"})
        assert "UNNAMED_FIELDS" in _failure(data).result.codes

    def test_no_fields_rejected(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = {**minimal_entity_dict, "fields": []}
        assert "NO_FIELDS" in _failure(data).result.codes

    def test_missing_table(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = {**minimal_entity_dict, "attributes": {}}
        error = _failure(data)
        assert error.entity_name == "Tag"
        assert "MISSING_TABLE" in error.result.codes

    def test_missing_identifier(self) -> None:
        data = {
            "name": "Note",
            "attributes": {"table": "notes"},
            "fields": [{"name": "text", "type": "String"}],
        }
        assert "MISSING_ID" in _failure(data).result.codes

    def test_multiple_identifiers(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "other_id", "Uuid", id=True)
        error = _failure(data)
        assert "MULTIPLE_IDS" in error.result.codes
        assert "id, other_id" in str(error)

    def test_invalid_type(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "broken", "Option<i32")
        assert "INVALID_TYPE" in _failure(data).result.codes

    def test_all_faults_reported_together(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["attributes"].update({"dialect": "oracle", "returning": "all"})
        data["fields"][0]["attributes"]["filter"] = "fuzzy"
        codes = set(_failure(data).result.codes)
        assert {"INVALID_DIALECT", "INVALID_RETURNING", "INVALID_FILTER"} <= codes


# ===========================================================================
# Dangling references
# ===========================================================================


class TestReferences:

    def _with_refs(self, base: Dict[str, Any]) -> Dict[str, Any]:
        data = _with_field(base, "label", "String", field=["create", "update"])
        data["attributes"].update({
            "projections": {"Card": ["id", "ghost"], "Empty": ["nothing"]},
            "indexes": [{"columns": ["label", "phantom"]}],
            "commands": [{"name": "Relabel", "fields": ["label", "missing"]}],
        })
        return data

    def test_lenient_drops_with_warnings(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = self._with_refs(minimal_entity_dict)
        entity, result = ModelBuilder().build_with_diagnostics(_raw(data))
        warning_codes = {w.code for w in result.warnings}
        assert {
            "PROJECTION_FIELD_UNKNOWN",
            "PROJECTION_EMPTY",
            "INDEX_COLUMN_UNKNOWN",
            "COMMAND_FIELD_UNKNOWN",
        } <= warning_codes
        assert [(p.name, p.fields) for p in entity.projections] == [("Card", ("id",))]
        assert entity.indexes[0].columns == ("label",)
        assert entity.commands[0].fields == ("label",)

    def test_strict_references_fail(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = self._with_refs(minimal_entity_dict)
        codes = set(_failure(data, strict=True).result.codes)
        assert {"PROJECTION_FIELD_UNKNOWN", "INDEX_COLUMN_UNKNOWN", "COMMAND_FIELD_UNKNOWN"} <= codes

    def test_index_accepts_column_name(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "label", "String", column={"name": "label_text"})
        data["attributes"]["indexes"] = [{"columns": ["label"]}]
        entity = _build(data)
        assert entity.indexes[0].columns == ("label_text",)


# ===========================================================================
# Single-entity validators
# ===========================================================================


class TestEntityValidators:

    def test_duplicate_field(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "label", "String")
        data = _with_field(data, "label", "String")
        assert "DUPLICATE_FIELD_NAME" in _failure(data).result.codes

    def test_duplicate_column(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "label", "String")
        data = _with_field(data, "title", "String", column={"name": "label"})
        assert "DUPLICATE_COLUMN_NAME" in _failure(data).result.codes

    def test_keyword_field_name(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "class", "String")
        assert "INVALID_FIELD_NAME" in _failure(data).result.codes

    def test_pydantic_reserved_name(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "model_config", "String")
        assert "FIELD_NAME_RESERVED" in _failure(data).result.codes

    def test_sql_reserved_column_warns(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "order", "i32")
        result = _diagnostics(data)
        assert result.is_valid
        assert "COLUMN_NAME_SQL_RESERVED" in {w.code for w in result.warnings}

    def test_filter_type_warnings(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "count", "i32", filter="like")
        data = _with_field(data, "active", "bool", filter="range")
        codes = {w.code for w in _diagnostics(data).warnings}
        assert {"LIKE_FILTER_ON_NON_TEXT", "RANGE_FILTER_ON_UNORDERED"} <= codes

    def test_soft_delete_without_column(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["attributes"]["soft_delete"] = True
        codes = {w.code for w in _diagnostics(data).warnings}
        assert "SOFT_DELETE_COLUMN_MISSING" in codes

    def test_duplicate_command(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["attributes"]["commands"] = ["Ping", "Ping"]
        assert "DUPLICATE_COMMAND" in _failure(data).result.codes

    def test_duplicate_index_name(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = _with_field(minimal_entity_dict, "label", "String", column={"index": True})
        data["attributes"]["indexes"] = [{"columns": ["label"]}]
        assert "DUPLICATE_INDEX_NAME" in _failure(data).result.codes

    def test_projection_struct_name(self, minimal_entity_dict: Dict[str, Any]) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["attributes"]["projections"] = {"Ref": ["id"]}
        entity = _build(data)
        assert entity.projections[0].struct_name("Tag") == "TagRef"


# ===========================================================================
# Document validators
# ===========================================================================


class TestDocumentValidators:

    def _entities(self, *datas: Dict[str, Any]) -> List[EntityModel]:
        return [_build(d) for d in datas]

    def test_reference_document_valid(
        self, user_dict: Dict[str, Any], post_dict: Dict[str, Any], product_dict: Dict[str, Any]
    ) -> None:
        result = validate_document(
            self._entities(user_dict, post_dict, product_dict), GenerationConfig()
        )
        assert result.is_valid
        assert not result.warnings

    def test_unknown_relation_target_warns(self, post_dict: Dict[str, Any]) -> None:
        result = validate_document(self._entities(post_dict), GenerationConfig())
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["RELATION_TARGET_UNKNOWN"]

    def test_unknown_relation_target_strict(self, post_dict: Dict[str, Any]) -> None:
        result = validate_document(
            self._entities(post_dict), GenerationConfig(strict_references=True)
        )
        assert "RELATION_TARGET_UNKNOWN" in {e.code for e in result.errors}

    def test_relation_table_mismatch(
        self, user_dict: Dict[str, Any], post_dict: Dict[str, Any]
    ) -> None:
        user_dict["attributes"]["table"] = "accounts"
        result = validate_document(self._entities(user_dict, post_dict), GenerationConfig())
        assert "RELATION_TABLE_MISMATCH" in {w.code for w in result.warnings}

    def test_duplicate_entity_and_table(self, minimal_entity_dict: Dict[str, Any]) -> None:
        result = validate_document(
            self._entities(minimal_entity_dict, minimal_entity_dict), GenerationConfig()
        )
        assert {"DUPLICATE_ENTITY_NAME", "DUPLICATE_TABLE_NAME"} <= set(result.codes)

    def test_same_table_other_schema_allowed(self, minimal_entity_dict: Dict[str, Any]) -> None:
        other = copy.deepcopy(minimal_entity_dict)
        other["name"] = "Label"
        other["attributes"]["schema"] = "archive"
        result = validate_document(
            self._entities(minimal_entity_dict, other), GenerationConfig()
        )
        assert result.is_valid


# ===========================================================================
# Type mapping
# ===========================================================================


def _field_model(type_text: str, **column: Any):
    data = {
        "name": "Probe",
        "attributes": {"table": "probes"},
        "fields": [
            {"name": "id", "type": "Uuid", "attributes": {"id": True}},
            {"name": "value", "type": type_text, "attributes": {"column": column} if column else {}},
        ],
    }
    return _build(data).get_field("value")


class TestTypeMap:

    @pytest.mark.parametrize(
        "text, base, nullable, dims",
        [
            ("Uuid", "uuid", False, 0),
            ("Option<String>", "string", True, 0),
            ("Vec<i32>", "i32", False, 1),
            ("Option<Vec<Vec<f64>>>", "f64", True, 2),
            ("Optional[int]", "i64", True, 0),
            ("DateTime<Utc>", "datetime", False, 0),
            ("chrono::NaiveDate", "date", False, 0),
            ("Vec<u8>", "bytes", False, 0),
            ("serde_json::Value", "json", False, 0),
        ],
    )
    def test_parse_type(self, text: str, base: str, nullable: bool, dims: int) -> None:
        ref: TypeRef = parse_type(text)
        assert (ref.base, ref.nullable, ref.array_dim, ref.known) == (base, nullable, dims, True)

    def test_custom_type_kept_verbatim(self) -> None:
        ref = parse_type("Money")
        assert ref.known is False
        assert ref.base == "Money"

    @pytest.mark.parametrize("text", ["", "   ", "Vec<i32", "Option[String"])
    def test_parse_type_errors(self, text: str) -> None:
        with pytest.raises(ValueError):
            parse_type(text)

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("i32", "INTEGER"),
            ("i64", "BIGINT"),
            ("String", "TEXT"),
            ("DateTime<Utc>", "TIMESTAMPTZ"),
            ("Vec<i32>", "INTEGER[]"),
            ("Value", "JSONB"),
            ("Money", "TEXT"),
        ],
    )
    def test_sql_type(self, text: str, expected: str) -> None:
        assert sql_type(_field_model(text)).to_sql() == expected

    def test_varchar_and_override(self) -> None:
        assert sql_type(_field_model("String", varchar=40)).to_sql() == "VARCHAR(40)"
        assert sql_type(_field_model("Vec<String>", sql_type="CITEXT")).to_sql() == "CITEXT"

    def test_python_type_registers_imports(self) -> None:
        imports: Dict[str, set] = {}
        assert python_type(parse_type("Option<Vec<Uuid>>"), imports) == "Optional[List[UUID]]"
        assert imports == {"uuid": {"UUID"}, "typing": {"List", "Optional"}}

    def test_python_type_custom_is_any(self) -> None:
        imports: Dict[str, set] = {}
        assert python_type(parse_type("Money"), imports) == "Any"
        assert imports == {"typing": {"Any"}}

    def test_python_defaults(self) -> None:
        imports: Dict[str, set] = {}
        assert python_default(parse_type("DateTime<Utc>"), imports) == "datetime.now(timezone.utc)"
        assert imports == {"datetime": {"datetime", "timezone"}}
        assert python_default(parse_type("Option<i32>"), {}) == "None"
        assert python_default(parse_type("Vec<i32>"), {}) == "[]"
        assert python_default(parse_type("bool"), {}) == "False"

    def test_filter_type_predicates(self) -> None:
        assert is_textual(parse_type("String"))
        assert not is_textual(parse_type("Vec<String>"))
        assert is_orderable(parse_type("NaiveDate"))
        assert not is_orderable(parse_type("Uuid"))
        assert FilterKind("range") is FilterKind.RANGE
        assert IndexKind.GIN.using_clause == " USING gin"
        assert IndexKind.BTREE.using_clause == ""
