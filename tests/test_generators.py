"""
tests/test_generators.py
Unit tests for the per-entity backends.

Tests cover:
- Entity and DTO shapes (entity.py / dto.py)
- Filter queries (query.py)
- Repository contract and dialect dispatch (repository.py)
- Postgres statements and repository class (postgres.py)
- Migration DDL (up / down)
- Commands, events, policy, streams, hooks and transactions
- Code correctness (valid Python syntax via ast.parse())
"""

from __future__ import annotations

import ast
import copy
from typing import Any, Dict, List, Set

import pytest

from entitygen.builder import build_entity
from entitygen.commands import (
    CommandGenerator,
    command_variant_name,
    payload_fields,
    result_variant_name,
)
from entitygen.dto import DtoGenerator
from entitygen.events import EventsGenerator, decode_function_name, event_variants
from entitygen.hooks import HooksGenerator, hook_methods
from entitygen.migrations import MigrationGenerator, column_definition
from entitygen.models import EntityModel, GenerationConfig, RawEntity
from entitygen.policy import PolicyGenerator, policy_checks
from entitygen.postgres import PostgresGenerator, postgres_statements
from entitygen.query import QueryGenerator, query_function_name, query_parameters
from entitygen.repository import (
    PrimaryRelational,
    RepositoryGenerator,
    Unimplemented,
    repository_methods,
    require_backend,
    resolve_dialect,
)
from entitygen.streams import StreamsGenerator
from entitygen.transactions import TransactionsGenerator
from entitygen.validators import UnimplementedDialectError


# ===========================================================================
# Helpers
# ===========================================================================


def _entity(data: Dict[str, Any]) -> EntityModel:
    return build_entity(RawEntity.model_validate(data))


def _is_valid_python(code: str, filename: str = "<generated>") -> bool:
    """Return True if *code* is syntactically valid Python."""
    try:
        ast.parse(code, filename=filename)
        return True
    except SyntaxError:
        return False


def _class_names(code: str) -> List[str]:
    return [n.name for n in ast.walk(ast.parse(code)) if isinstance(n, ast.ClassDef)]


def _methods(code: str, class_name: str) -> List[str]:
    for node in ast.walk(ast.parse(code)):
        if isinstance(node, ast.ClassDef) and node.name == class_name:
            return [
                n.name
                for n in node.body
                if isinstance(n, (ast.FunctionDef, ast.AsyncFunctionDef))
            ]
    raise AssertionError(f"class {class_name} not found")


USER_COLUMNS = "id, email, name, age, created_at, deleted_at"


@pytest.fixture()
def user(user_dict: Dict[str, Any]) -> EntityModel:
    return _entity(user_dict)


@pytest.fixture()
def post(post_dict: Dict[str, Any]) -> EntityModel:
    return _entity(post_dict)


@pytest.fixture()
def product(product_dict: Dict[str, Any]) -> EntityModel:
    return _entity(product_dict)


@pytest.fixture()
def article(article_entity_dict: Dict[str, Any]) -> EntityModel:
    return _entity(article_entity_dict)


@pytest.fixture()
def item(inventory_entity_dict: Dict[str, Any]) -> EntityModel:
    return _entity(inventory_entity_dict)


@pytest.fixture()
def tag(minimal_entity_dict: Dict[str, Any]) -> EntityModel:
    return _entity(minimal_entity_dict)


# ===========================================================================
# entity.py / dto.py
# ===========================================================================


class TestDtoGenerator:

    def test_files(self, config: GenerationConfig, user: EntityModel) -> None:
        files = DtoGenerator(config).generate(user)
        assert set(files) == {"entity.py", "dto.py"}
        for name, code in files.items():
            assert _is_valid_python(code, name)

    def test_entity_has_every_field(self, config: GenerationConfig, user: EntityModel) -> None:
        code = DtoGenerator(config).generate_entity_module(user)
        assert "class User(BaseModel):" in code
        assert "    id: UUID" in code
        assert '    email: str = Field(..., description="Login address.")' in code
        assert "    age: Optional[int] = None" in code
        assert "    deleted_at: Optional[datetime] = None" in code
        assert '            deleted_at=row["deleted_at"],' in code
        assert "User entity stored in ``core.users``." in code

    def test_shapes(self, config: GenerationConfig, user: EntityModel) -> None:
        code = DtoGenerator(config).generate_dto_module(user)
        assert _class_names(code) == [
            "CreateUserRequest",
            "UpdateUserRequest",
            "UserResponse",
            "UserSummary",
        ]
        assert _methods(code, "CreateUserRequest") == ["to_entity"]
        assert _methods(code, "UpdateUserRequest") == ["changes"]
        assert _methods(code, "UserResponse") == ["from_entity"]
        assert _methods(code, "UserSummary") == ["from_entity", "from_row"]

    def test_create_fills_identifier_and_defaults(
        self, config: GenerationConfig, user: EntityModel
    ) -> None:
        code = DtoGenerator(config).generate_dto_module(user)
        assert "from entitygen.runtime import uuid7" in code
        assert "            id=uuid7()," in code
        assert "            email=self.email," in code
        assert "            created_at=datetime.now(timezone.utc)," in code
        assert "            deleted_at=None," in code

    def test_uuid_v4(self, config: GenerationConfig, minimal_entity_dict: Dict[str, Any]) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["attributes"]["uuid"] = "v4"
        data["fields"].append(
            {"name": "label", "type": "String", "attributes": {"field": ["create"]}}
        )
        code = DtoGenerator(config).generate_dto_module(_entity(data))
        assert "id=uuid4()," in code
        assert "uuid7" not in code

    def test_update_changes_skip_none_for_required(
        self, config: GenerationConfig, user: EntityModel
    ) -> None:
        code = DtoGenerator(config).generate_dto_module(user)
        assert "    name: Optional[str] = None" in code
        assert 'required = {"name"}' in code
        assert "self.model_dump(exclude_unset=True)" in code

    def test_projection_keeps_declared_order(
        self, config: GenerationConfig, minimal_entity_dict: Dict[str, Any]
    ) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["fields"].append({"name": "label", "type": "String"})
        data["attributes"]["projections"] = {"Card": ["label", "id"]}
        code = DtoGenerator(config).generate_dto_module(_entity(data))
        card = code[code.index("class TagCard"):]
        assert card.index("label: str") < card.index("id: UUID")

    def test_no_shapes_no_dto(self, config: GenerationConfig, minimal_entity_dict: Dict[str, Any]) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["fields"][0]["attributes"]["field"] = "skip"
        files = DtoGenerator(config).generate(_entity(data))
        assert list(files) == ["entity.py"]

    def test_custom_runtime_module(self, user: EntityModel) -> None:
        config = GenerationConfig(runtime_module="myapp.support")
        code = DtoGenerator(config).generate_dto_module(user)
        assert "from myapp.support import uuid7" in code


# ===========================================================================
# query.py
# ===========================================================================


class TestQueryGenerator:

    def test_parameters_in_field_order(self, user: EntityModel) -> None:
        params = query_parameters(user)
        assert [p.name for p in params] == [
            "email", "name", "age_from", "age_to", "created_at_from", "created_at_to",
        ]
        assert [p.template for p in params[:3]] == [
            "email ILIKE ${}", "name = ${}", "age >= ${}",
        ]
        assert params[0].pattern is True

    def test_function_name(self, user: EntityModel) -> None:
        assert query_function_name(user) == "build_user_query"

    def test_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = QueryGenerator(config).generate(user)
        assert _is_valid_python(code)
        assert 'TABLE = "core.users"' in code
        assert f'COLUMNS = "{USER_COLUMNS}"' in code
        assert "class UserQuery(BaseModel):" in code
        assert "    email: Optional[str] = None" in code
        assert "    age_from: Optional[int] = None" in code
        assert "    limit: Optional[int] = Field(default=None, ge=0)" in code
        assert "def build_user_query(" in code
        assert "like_pattern(query.email)" in code
        assert '["deleted_at IS NULL"]' in code

    def test_without_soft_delete(self, config: GenerationConfig, item: EntityModel) -> None:
        code = QueryGenerator(config).generate(item)
        assert "deleted_at" not in code
        assert "like_pattern" not in code

    def test_no_filters_rejected(self, config: GenerationConfig, tag: EntityModel) -> None:
        with pytest.raises(ValueError):
            QueryGenerator(config).generate(tag)


# ===========================================================================
# repository.py
# ===========================================================================


class TestRepositoryContract:

    def test_dialect_dispatch(self, tag: EntityModel, minimal_entity_dict: Dict[str, Any]) -> None:
        assert isinstance(require_backend(tag), PrimaryRelational)
        data = copy.deepcopy(minimal_entity_dict)
        data["attributes"]["dialect"] = "mongodb"
        mongo = _entity(data)
        assert resolve_dialect(mongo.dialect) == Unimplemented("mongodb")
        with pytest.raises(UnimplementedDialectError) as exc_info:
            require_backend(mongo)
        assert "'mongodb' dialect has no backend" in str(exc_info.value)

    def test_user_methods(self, user: EntityModel) -> None:
        imports: Dict[str, Set[str]] = {}
        methods = repository_methods(user, imports)
        assert [m.name for m in methods] == [
            "create", "find_by_id", "update", "delete", "list", "query",
            "find_posts", "find_by_id_summary",
            "hard_delete", "restore", "find_by_id_with_deleted", "list_with_deleted",
        ]
        assert imports["..post.entity"] == {"Post"}
        find_posts = next(m for m in methods if m.name == "find_posts")
        assert find_posts.signature() == (
            "async def find_posts(self, user_id: UUID) -> List[Post]:"
        )
        restore = next(m for m in methods if m.name == "restore")
        assert restore.operation == "DELETE"

    def test_post_parent_lookup(self, post: EntityModel) -> None:
        methods = repository_methods(post, {})
        parent = next(m for m in methods if m.lookup == "parent")
        assert parent.name == "find_user"
        assert parent.returns == "Optional[User]"
        assert "hard_delete" not in [m.name for m in methods]

    def test_minimal_methods(self, tag: EntityModel) -> None:
        assert [m.name for m in repository_methods(tag, {})] == [
            "find_by_id", "delete", "list",
        ]

    def test_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = RepositoryGenerator(config).generate(user)
        assert _is_valid_python(code)
        assert "class UserRepository(ABC):" in code
        assert code.count("@abstractmethod") == 12
        assert "from ..post.entity import Post" in code


# ===========================================================================
# postgres.py
# ===========================================================================


class TestPostgresStatements:

    def test_soft_delete_statements(self, user: EntityModel) -> None:
        stmts = postgres_statements(user)
        assert stmts.insert == (
            f"INSERT INTO core.users ({USER_COLUMNS}) "
            f"VALUES ($1, $2, $3, $4, $5, $6) RETURNING *"
        )
        assert stmts.find_by_id == (
            f"SELECT {USER_COLUMNS} FROM core.users WHERE id = $1 AND deleted_at IS NULL"
        )
        assert stmts.delete == (
            "UPDATE core.users SET deleted_at = NOW() WHERE id = $1 AND deleted_at IS NULL"
        )
        assert stmts.list == (
            f"SELECT {USER_COLUMNS} FROM core.users WHERE deleted_at IS NULL "
            f"ORDER BY id DESC LIMIT $1 OFFSET $2"
        )
        assert stmts.hard_delete == "DELETE FROM core.users WHERE id = $1"
        assert stmts.restore == (
            "UPDATE core.users SET deleted_at = NULL WHERE id = $1 AND deleted_at IS NOT NULL"
        )
        assert stmts.find_by_id_with_deleted == f"SELECT {USER_COLUMNS} FROM core.users WHERE id = $1"
        assert stmts.list_with_deleted == (
            f"SELECT {USER_COLUMNS} FROM core.users ORDER BY id DESC LIMIT $1 OFFSET $2"
        )

    def test_lookups(self, user: EntityModel, post: EntityModel) -> None:
        assert postgres_statements(user).children == {
            "find_posts": "SELECT * FROM core.posts WHERE user_id = $1"
        }
        assert postgres_statements(user).projections == {
            "find_by_id_summary": (
                "SELECT id, email FROM core.users WHERE id = $1 AND deleted_at IS NULL"
            )
        }
        assert postgres_statements(post).parents == {
            "find_user": "SELECT * FROM core.users WHERE id = $1"
        }

    def test_hard_delete_without_soft_delete(self, post: EntityModel) -> None:
        stmts = postgres_statements(post)
        assert stmts.delete == "DELETE FROM core.posts WHERE id = $1"
        assert stmts.hard_delete is None
        assert stmts.restore is None

    @pytest.mark.parametrize(
        "mode, suffix",
        [("full", " RETURNING *"), ("id", " RETURNING id"), ("none", "")],
    )
    def test_returning_modes(
        self, inventory_entity_dict: Dict[str, Any], mode: str, suffix: str
    ) -> None:
        data = copy.deepcopy(inventory_entity_dict)
        data["attributes"]["returning"] = mode
        stmts = postgres_statements(_entity(data))
        assert stmts.insert == (
            f"INSERT INTO public.items (id, sku, quantity) VALUES ($1, $2, $3){suffix}"
        )

    def test_clickhouse_has_no_backend(self, clickhouse_document_dict: Dict[str, Any]) -> None:
        page_view = _entity(clickhouse_document_dict["entities"][1])
        with pytest.raises(UnimplementedDialectError):
            postgres_statements(page_view)


class TestPostgresGenerator:

    def test_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = PostgresGenerator(config).generate(user)
        assert _is_valid_python(code)
        assert "class PostgresUserRepository(UserRepository):" in code
        assert 'TABLE = "core.users"' in code
        assert 'FIND_POSTS_SQL = "SELECT * FROM core.posts WHERE user_id = $1"' in code
        assert '    "name": "name",' in code
        assert "sql, params = build_user_query(query)" in code
        assert set(_methods(code, "PostgresUserRepository")) >= {
            "__init__", "_fetch", "_fetchrow", "_execute", "_publish",
            "create", "update", "delete", "restore", "find_posts", "find_by_id_summary",
        }

    def test_streams_publish_events(self, config: GenerationConfig, user: EntityModel) -> None:
        code = PostgresGenerator(config).generate(user)
        assert "await self._publish(UserCreated(entity=entity))" in code
        assert "await self._publish(UserUpdated(before=before, after=updated))" in code
        assert "await self._publish(UserSoftDeleted(id=id))" in code
        assert "await self._publish(UserHardDeleted(id=id))" in code
        assert "await self._publish(UserRestored(id=id))" in code
        assert 'channel_name("users")' in code

    def test_no_streams_no_publish(self, config: GenerationConfig, post: EntityModel) -> None:
        code = PostgresGenerator(config).generate(post)
        assert "_publish" not in code
        assert "entity = await self.find_by_id(id)" in code
        assert "return None if row is None else User.from_row(row)" in code

    def test_error_override(self, config: GenerationConfig, product: EntityModel) -> None:
        code = PostgresGenerator(config).generate(product)
        assert _is_valid_python(code)
        assert "from asyncpg import PostgresError" in code
        assert "from shop.errors import StoreError" in code
        assert "raise StoreError(str(exc)) from exc" in code
        assert code.count("except PostgresError as exc:") == 3

    def test_returning_id_rereads_on_update(self, config: GenerationConfig, product: EntityModel) -> None:
        code = PostgresGenerator(config).generate(product)
        assert "await self._fetchrow(INSERT_SQL, entity.id, entity.sku, entity.quantity)" in code
        assert "updated = await self.find_by_id(id)" in code
        assert "returning=False" in code


# ===========================================================================
# Migrations
# ===========================================================================


class TestMigrationGenerator:

    def test_user_up(self, config: GenerationConfig, user: EntityModel) -> None:
        pair = MigrationGenerator(config).generate(user)
        assert pair.name == "core_users"
        assert pair.up_filename == "core_users.up.sql"
        assert pair.up == (
            "CREATE TABLE IF NOT EXISTS core.users (\n"
            "    id UUID PRIMARY KEY,\n"
            "    email VARCHAR(255) NOT NULL UNIQUE,\n"
            "    name TEXT NOT NULL,\n"
            "    age INTEGER,\n"
            "    created_at TIMESTAMPTZ NOT NULL,\n"
            "    deleted_at TIMESTAMPTZ\n"
            ");\n"
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email_created_at "
            "ON core.users (email, created_at) WHERE deleted_at IS NULL;\n"
        )
        assert pair.down == "DROP TABLE IF EXISTS core.users CASCADE;\n"

    def test_post_foreign_key_and_index(self, config: GenerationConfig, post: EntityModel) -> None:
        up = MigrationGenerator(config).generate_up(post)
        assert "    user_id UUID NOT NULL REFERENCES core.users(id) ON DELETE CASCADE,\n" in up
        assert "    published BOOLEAN NOT NULL DEFAULT FALSE\n" in up
        assert up.endswith("CREATE INDEX IF NOT EXISTS idx_posts_user_id ON core.posts (user_id);\n")

    def test_column_clauses(self, item: EntityModel) -> None:
        assert column_definition(item, item.get_field("sku")) == "sku TEXT NOT NULL UNIQUE"
        assert column_definition(item, item.get_field("quantity")) == (
            "quantity INTEGER NOT NULL DEFAULT 0"
        )

    def test_index_methods_and_checks(
        self, config: GenerationConfig, minimal_entity_dict: Dict[str, Any]
    ) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["fields"].append({
            "name": "labels",
            "type": "Vec<String>",
            "attributes": {"column": {"index": "gin", "check": "cardinality(labels) < 10"}},
        })
        entity = _entity(data)
        up = MigrationGenerator(config).generate_up(entity)
        assert "    labels TEXT[] NOT NULL CHECK (cardinality(labels) < 10)\n" in up
        assert "CREATE INDEX IF NOT EXISTS idx_tags_labels ON public.tags USING gin (labels);\n" in up

    def test_deterministic(self, config: GenerationConfig, user_dict: Dict[str, Any]) -> None:
        first = MigrationGenerator(config).generate(_entity(user_dict))
        second = MigrationGenerator(config).generate(_entity(copy.deepcopy(user_dict)))
        assert first == second

    def test_clickhouse_rejected(
        self, config: GenerationConfig, clickhouse_document_dict: Dict[str, Any]
    ) -> None:
        with pytest.raises(UnimplementedDialectError):
            MigrationGenerator(config).generate(_entity(clickhouse_document_dict["entities"][1]))


# ===========================================================================
# commands.py
# ===========================================================================


class TestCommandGenerator:

    def test_payload_sources(self, user: EntityModel) -> None:
        register, rename, deactivate = user.commands
        assert [f.name for f in payload_fields(user, register)] == ["email", "name", "age"]
        assert [f.name for f in payload_fields(user, rename)] == ["name"]
        assert payload_fields(user, deactivate) == []
        assert command_variant_name(user, rename) == "RenameUserCommand"
        assert result_variant_name(user, rename) == "RenameUserResult"

    def test_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = CommandGenerator(config).generate(user)
        assert _is_valid_python(code)
        for name in (
            "RegisterUser", "RenameUser", "DeactivateUser",
            "UserCommand", "RegisterUserCommand", "RenameUserCommand", "DeactivateUserCommand",
            "UserCommandResult", "RegisterUserResult", "RenameUserResult", "DeactivateUserResult",
            "UserCommandHandler",
        ):
            assert name in _class_names(code), name
        assert "@dataclass(frozen=True, kw_only=True)" in code
        assert _methods(code, "UserCommandHandler") == [
            "handle", "handle_register", "handle_rename", "handle_deactivate",
        ]

    def test_results(self, config: GenerationConfig, user: EntityModel) -> None:
        code = CommandGenerator(config).generate(user)
        rename = code[code.index("class RenameUserResult"):]
        assert rename.splitlines()[2] == "    value: User"
        deactivate = code[code.index("class DeactivateUserResult"):]
        assert "value" not in deactivate.split("\n\n\n")[0]
        assert "return DeactivateUserResult()" in code
        assert "raise TypeError(" in code

    def test_payload_with_identifier(self, config: GenerationConfig, user: EntityModel) -> None:
        code = CommandGenerator(config).generate(user)
        rename = code[code.index("class RenameUser:"):].split("\n\n\n")[0]
        assert "    id: UUID" in rename
        assert "    name: str" in rename

    def test_custom_payload_and_result(
        self, config: GenerationConfig, minimal_entity_dict: Dict[str, Any]
    ) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["attributes"]["commands"] = [
            {"name": "Import", "payload": "app.imports.TagBatch", "result": "int"},
        ]
        code = CommandGenerator(config).generate(_entity(data))
        assert "from app.imports import TagBatch" in code
        assert "class ImportTag:" not in code
        assert "    payload: TagBatch" in code
        assert "    value: int" in code

    def test_no_commands_rejected(self, config: GenerationConfig, tag: EntityModel) -> None:
        with pytest.raises(ValueError):
            CommandGenerator(config).generate(tag)


# ===========================================================================
# events.py / streams.py
# ===========================================================================


class TestEventsAndStreams:

    def test_variants(self, user: EntityModel, post: EntityModel) -> None:
        assert [v.suffix for v in event_variants(user, "UUID")] == [
            "Created", "Updated", "SoftDeleted", "Restored", "HardDeleted",
        ]
        assert [v.kind for v in event_variants(post, "UUID")] == [
            "created", "updated", "hard_deleted",
        ]
        assert decode_function_name(user) == "decode_user_event"

    def test_events_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = EventsGenerator(config).generate(user)
        assert _is_valid_python(code)
        assert 'kind: Literal["soft_deleted"] = "soft_deleted"' in code
        assert (
            "UserEvent = Annotated[Union[UserCreated, UserUpdated, UserSoftDeleted, "
            'UserRestored, UserHardDeleted], Field(discriminator="kind")]'
        ) in code
        assert "def decode_user_event(payload: Union[str, bytes]) -> UserEvent:" in code
        assert "return self.after.id" in code

    def test_streams_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = StreamsGenerator(config).generate(user)
        assert _is_valid_python(code)
        assert 'TABLE = "users"' in code
        assert "class UserSubscriber(NotificationSubscriber[UserEvent]):" in code
        assert "return await cls.listen(connection, channel(), decode_user_event)" in code


# ===========================================================================
# policy.py
# ===========================================================================


class TestPolicyGenerator:

    def test_checks(self, user: EntityModel, tag: EntityModel) -> None:
        assert [c[0] for c in policy_checks(user, {})] == [
            "can_create", "can_read", "can_update", "can_delete", "can_list", "can_command",
        ]
        assert [c[0] for c in policy_checks(tag, {})] == ["can_read", "can_delete", "can_list"]

    def test_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = PolicyGenerator(config).generate(user)
        assert _is_valid_python(code)
        assert "class UserPolicy(ABC, Generic[ContextT]):" in code
        assert "class UserAllowAllPolicy(UserPolicy[Any]):" in code
        assert "class UserPolicyRepository(Generic[ContextT]):" in code
        wrapper = _methods(code, "UserPolicyRepository")
        assert "restore" in wrapper and "execute" in wrapper and "find_posts" in wrapper
        assert (
            "await self._authorize(PolicyOperation.DELETE, self._policy.can_delete(id, ctx))"
        ) in code
        assert "return await self._run(PolicyOperation.LIST, self._repo.query(query))" in code
        assert "async def find_posts(self, user_id: UUID, *, ctx: ContextT) -> List[Post]:" in code
        assert "self._policy.can_read(user_id, ctx)" in code

    def test_without_repository(
        self, config: GenerationConfig, minimal_entity_dict: Dict[str, Any]
    ) -> None:
        data = copy.deepcopy(minimal_entity_dict)
        data["attributes"].update({"sql": "none", "policy": True})
        code = PolicyGenerator(config).generate(_entity(data))
        assert "PolicyRepository" not in code
        assert "TagAllowAllPolicy" in code


# ===========================================================================
# hooks.py / transactions.py
# ===========================================================================


class TestHooksAndTransactions:

    def test_hooks_follow_entity(self, user: EntityModel, tag: EntityModel) -> None:
        assert [h[0] for h in hook_methods(user, {})] == [
            "before_create", "after_create", "before_update", "after_update",
            "before_delete", "after_delete", "before_hard_delete", "after_hard_delete",
            "before_restore", "after_restore", "before_command", "after_command",
        ]
        assert [h[0] for h in hook_methods(tag, {})] == ["before_delete", "after_delete"]

    def test_hooks_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = HooksGenerator(config).generate(user)
        assert _is_valid_python(code)
        assert "class UserHooks:" in code
        assert (
            "    async def after_command(self, command: UserCommand, "
            "result: UserCommandResult) -> None:"
        ) in code

    def test_transactions_module(self, config: GenerationConfig, user: EntityModel) -> None:
        code = TransactionsGenerator(config).generate(user)
        assert _is_valid_python(code)
        assert "class UserTransactionRepo(PostgresUserRepository):" in code
        assert "if not connection.is_in_transaction():" in code
        assert "async with transaction(pool) as connection:" in code

    def test_transactions_need_backend(
        self, config: GenerationConfig, clickhouse_document_dict: Dict[str, Any]
    ) -> None:
        with pytest.raises(UnimplementedDialectError):
            TransactionsGenerator(config).generate(
                _entity(clickhouse_document_dict["entities"][1])
            )
