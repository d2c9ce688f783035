import asyncio

import pytest

from rulebuilder.core.tree.ast import (
    ExpressionGroup,
    FieldRef,
    Literal,
    Predicate,
    PredicateGroup,
    RuleRef,
    RuleRefCondition,
)
from rulebuilder.core.tree.catalog import RuleBuilderConfig
from rulebuilder.core.tree.exceptions import (
    ConfigurationError,
    LoadError,
    RuleTreeError,
    StructuralInvariantError,
)
from rulebuilder.domain.entities.rule import RuleDocument, RuleSummary, SaveResult, VersionInfo
from rulebuilder.domain.ports import ReferenceResolver, RulePersistence
from rulebuilder.domain.services.editing_session import EditingSession


class FakeResolver(ReferenceResolver):
    """In-memory resolver; loads can be held back per uuid."""

    def __init__(self, documents: dict[str, RuleDocument]):
        self.documents = documents
        self.loads: list[tuple] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: set[str] = set()

    async def search(self, rule_types=None, query=None):
        return [
            RuleSummary(rule_id=doc.rule_id, uuid=doc.uuid, version=doc.version, return_type=doc.return_type)
            for doc in self.documents.values()
            if (not rule_types or doc.rule_type in rule_types) and (not query or query in doc.rule_id)
        ]

    async def load(self, uuid, version=None):
        self.loads.append((uuid, version))
        gate = self.gates.get(uuid)
        if gate is not None:
            await gate.wait()
        if uuid in self.failures:
            raise LoadError(f"Rule {uuid} unavailable", uuid=uuid, version=version)
        return self.documents[uuid]


class FakePersistence(RulePersistence):
    """In-memory versioned storage."""

    def __init__(self):
        self.rules: dict[str, list[dict]] = {}

    def _store(self, uuid: str, data: dict) -> SaveResult:
        versions = self.rules.setdefault(uuid, [])
        data = {**data, "uuId": uuid, "version": len(versions) + 1}
        versions.append(data)
        return SaveResult(uuid=uuid, version=data["version"], rule_id=data["metadata"]["id"])

    async def create(self, document):
        return self._store(f"u-{len(self.rules) + 1}", document.to_dict())

    async def update(self, uuid, document):
        return self._store(uuid, document.to_dict())

    async def list_versions(self, uuid):
        return [
            VersionInfo(version=data["version"], rule_id=data["metadata"]["id"])
            for data in reversed(self.rules[uuid])
        ]

    async def get_version(self, uuid, version):
        return RuleDocument.from_dict(self.rules[uuid][int(version) - 1])

    async def restore(self, uuid, version):
        return self._store(uuid, self.rules[uuid][version - 1])


def _document(uuid, rule_id, structure, return_type, definition, version=1) -> RuleDocument:
    return RuleDocument(
        structure=structure,
        return_type=return_type,
        definition=definition,
        rule_type="Reporting",
        uuid=uuid,
        version=version,
        rule_id=rule_id,
    )


@pytest.fixture
def documents(config) -> dict[str, RuleDocument]:
    is_adult = Predicate(
        name="Condition 1",
        left=FieldRef("number", "T.AGE"),
        operator="greater_than",
        right=Literal("number", 17),
    )
    return {
        "u-adult": _document("u-adult", "IS_ADULT", "condition", "boolean", is_adult, version=2),
        "u-age": _document("u-age", "AGE_BAND", "expression", "number", FieldRef("number", "T.AGE"), version=3),
        "u-income": _document("u-income", "INCOME_BAND", "expression", "number", FieldRef("number", "T.INCOME")),
        "u-broken": _document("u-broken", "BROKEN", "expression", "number", FieldRef("text", "T.NAME")),
    }


@pytest.fixture
def resolver(documents) -> FakeResolver:
    return FakeResolver(documents)


@pytest.fixture
def session(config, resolver, settings) -> EditingSession:
    return EditingSession(config, resolver, settings=settings, session_id="es_test")


def _summary(document: RuleDocument) -> RuleSummary:
    return RuleSummary(
        rule_id=document.rule_id,
        uuid=document.uuid,
        version=document.version,
        return_type=document.return_type,
        rule_type=document.rule_type,
    )


class TestNewRule:
    """Test starting new rules."""

    def test_condition_rule(self, session):
        """Test the default condition tree."""
        document = session.new_rule("condition", rule_id="MY_RULE")

        assert document.return_type == "boolean"
        assert document.definition.name == "Main Condition"
        assert [child.name for child in document.definition.children] == ["Condition 1"]
        assert session.is_new
        assert session.expansion.is_expanded("root-condition-0")

    def test_case_rule(self, session):
        """Test the default case uses the configured default type."""
        document = session.new_rule("case")

        assert document.return_type == "number"
        assert len(document.definition.when_clauses) == 1
        assert session.else_label() == "Default"

    def test_expression_rule(self, session):
        """Test the default expression is an empty literal."""
        document = session.new_rule("expression", return_type="text")
        assert document.definition == Literal("text", "")

    def test_unknown_structure(self, session):
        """Test that an unknown structure is rejected."""
        with pytest.raises(ValueError, match="Unknown rule structure"):
            session.new_rule("table")

    def test_no_rule_open(self, session):
        """Test that editing without a rule raises."""
        with pytest.raises(RuleTreeError, match="No rule is open"):
            session.node("root")


class TestConditionEditing:
    """Test condition edits through the session."""

    def test_sibling_labels(self, session):
        """Test that added siblings are numbered in sequence."""
        session.new_rule("condition")
        session.add_condition("root")
        session.add_condition("root")

        assert [child.name for child in session.definition.children] == [
            "Condition 1",
            "Condition 2",
            "Condition 3",
        ]

    def test_emptied_nested_group_is_removed(self, session):
        """Test that removing the last child of a nested group removes the group."""
        session.new_rule("condition")
        session.add_condition_group("root")
        assert isinstance(session.node("root-condition-1"), PredicateGroup)

        session.remove_condition("root-condition-1-condition-0")
        assert len(session.node("root-condition-1").children) == 1

        session.remove_condition("root-condition-1-condition-0")
        assert len(session.definition.children) == 1
        assert session.definition.children[0].name == "Condition 1"

    def test_emptied_root_becomes_default_predicate(self, session):
        """Test that the root never ends up as an empty group."""
        session.new_rule("condition")
        session.remove_condition("root-condition-0")

        assert isinstance(session.definition, Predicate)
        assert session.definition.name == "Condition 1"

    def test_change_kind_and_back(self, session):
        """Test switching a child to a group and back after trimming it."""
        session.new_rule("condition")
        original = session.node("root-condition-0")

        session.change_condition_kind("root-condition-0", "conditionGroup")
        assert session.node("root-condition-0").name == "Group 1"

        session.remove_condition("root-condition-0-condition-1")
        session.change_condition_kind("root-condition-0", "condition")

        assert session.node("root-condition-0") == original

    def test_group_settings(self, session):
        """Test conjunction, negation, renaming and reordering."""
        session.new_rule("condition")
        session.add_condition("root")
        session.set_conjunction("root", "OR")
        session.toggle_negate("root")
        session.rename_condition("root-condition-1", "Eligibility")
        session.reorder_conditions("root", 1, 0)

        root = session.definition
        assert root.conjunction.value == "OR"
        assert root.negate is True
        assert [child.name for child in root.children] == ["Eligibility", "Condition 1"]

    def test_operator_and_left_changes(self, session):
        """Test reshaping a predicate through the session."""
        session.new_rule("condition")
        session.change_operator("root-condition-0", "between")
        assert session.node("root-condition-0").right == [Literal("number", 0), Literal("number", 0)]

        session.change_left("root-condition-0", FieldRef("date", "T.BORN"))
        assert [operand.return_type for operand in session.node("root-condition-0").right] == ["date", "date"]
        assert session.available_operators("root-condition-0") == ["equal", "between", "is_null"]

    def test_dynamic_right_operands(self, session):
        """Test adding and removing operands of a dynamic operator."""
        session.new_rule("condition")
        session.change_operator("root-condition-0", "in")
        session.add_right_operand("root-condition-0")
        assert len(session.node("root-condition-0").right) == 4

        session.remove_right_operand("root-condition-0", 0)
        assert len(session.node("root-condition-0").right) == 3


class TestExpressionEditing:
    """Test expression edits through the session."""

    def test_wrap_and_collapse(self, session):
        """Test wrapping a leaf into a group and removing operands again."""
        session.new_rule("expression")
        session.set_expression("root", FieldRef("number", "T.A"))
        session.wrap_expression("root")
        session.append_operand("root")

        group = session.definition
        assert isinstance(group, ExpressionGroup)
        assert group.operators == ["+", "+"]
        assert len(group.operands) == 3

        session.remove_operand("root", 2)
        session.remove_operand("root", 1)
        assert session.definition == FieldRef("number", "T.A")

    def test_nested_edit_reinfers_group_type(self, session):
        """Test that changing an operator deep in the tree updates group types."""
        session.new_rule("expression", return_type="text")
        session.wrap_expression("root")
        assert session.definition.return_type == "text"

        session.update_operator("root", 0, "*")
        assert session.definition.return_type == "number"

    def test_change_source(self, session, config):
        """Test switching the source of a leaf."""
        session.new_rule("expression")
        session.change_source("root", "field")
        assert session.definition == FieldRef("number", config.default_field)

    def test_missing_default_operator(self, session):
        """Test that wrapping without a configured operator raises."""
        session.new_rule("expression", return_type="boolean")
        with pytest.raises(ConfigurationError, match="No default expression operator"):
            session.wrap_expression("root")
        assert session.definition == Literal("boolean", False)


class TestCaseEditing:
    """Test case edits through the session."""

    @pytest.mark.asyncio
    async def test_result_labels_follow_references(self, session, documents):
        """Test the reference label on a result and its reversion when cleared."""
        session.new_rule("case")
        session.add_when_clause()
        session.add_when_clause()
        assert [session.node(f"case-when-{i}").name for i in range(3)] == [
            "Condition 1",
            "Condition 2",
            "Condition 3",
        ]

        session.change_source("case-then-1", "ruleRef")
        assert session.result_label(1) == "Result 2"

        assert await session.resolve_reference("case-then-1", _summary(documents["u-age"]))
        assert session.result_label(1) == "AGE_BAND"

        session.clear_reference("case-then-1")
        assert session.result_label(1) == "Result 2"

    def test_typed_labels(self, session):
        """Test typed result and else labels."""
        session.new_rule("case")
        session.set_result_label(0, "High")
        session.set_else_label("Fallback")

        assert session.result_label(0) == "High"
        assert session.else_label() == "Fallback"

    def test_removing_last_when_condition(self, session):
        """Test that the only clause keeps a default predicate."""
        session.new_rule("case")
        session.change_when_kind(0, "conditionGroup")
        session.remove_condition("case-when-0-condition-0")
        session.remove_condition("case-when-0-condition-0")

        assert len(session.definition.when_clauses) == 1
        assert isinstance(session.node("case-when-0"), Predicate)
        assert session.node("case-when-0").name == "Condition 1"

    def test_removing_when_condition_removes_clause(self, session):
        """Test that emptying one of several clause conditions drops the clause."""
        session.new_rule("case")
        session.add_when_clause()
        session.remove_condition("case-when-0")

        assert len(session.definition.when_clauses) == 1
        assert session.node("case-when-0").name == "Condition 2"

    def test_case_edits_require_case(self, session):
        """Test that case edits on another structure raise."""
        session.new_rule("condition")
        with pytest.raises(RuleTreeError, match="not a case"):
            session.add_when_clause()


class TestReferences:
    """Test asynchronous reference resolution."""

    @pytest.mark.asyncio
    async def test_resolve_condition_reference(self, session, documents):
        """Test selecting a boolean rule as a predicate."""
        session.new_rule("condition")
        session.change_condition_kind("root-condition-0", "ruleRef")

        applied = await session.resolve_reference("root-condition-0", _summary(documents["u-adult"]))

        node = session.node("root-condition-0")
        assert applied is True
        assert isinstance(node, RuleRefCondition)
        assert node.name == "IS_ADULT"
        assert node.rule_ref.version == 2
        assert node.rule_ref.internal_mismatch is False
        assert session.warnings == {}

    @pytest.mark.asyncio
    async def test_context_mismatch_is_blocking(self, session, documents):
        """Test that a number rule used as a predicate is reported."""
        session.new_rule("condition")
        session.change_condition_kind("root-condition-0", "ruleRef")

        await session.resolve_reference("root-condition-0", _summary(documents["u-age"]))

        warnings = session.warnings_for("root-condition-0")
        assert [warning.code for warning in warnings] == ["context_mismatch"]
        assert warnings[0].message == "Rule expected to return boolean but evaluates to number"
        assert session.has_blocking_warnings

    @pytest.mark.asyncio
    async def test_internal_mismatch_is_advisory(self, session, documents):
        """Test that an inconsistent target is flagged without blocking."""
        session.new_rule("expression")
        session.change_source("root", "ruleRef")

        await session.resolve_reference("root", _summary(documents["u-broken"]))

        node = session.node("root")
        assert node.internal_mismatch is True
        assert node.internal_declared_type == "number"
        assert node.internal_evaluated_type == "text"
        warnings = session.warnings_for("root")
        assert [warning.code for warning in warnings] == ["internal_mismatch"]
        assert warnings[0].blocking is False
        assert not session.has_blocking_warnings

    @pytest.mark.asyncio
    async def test_check_is_memoized(self, session, documents):
        """Test that one target is checked once however often it is used."""
        session.new_rule("case")
        session.add_when_clause()
        session.change_source("case-then-0", "ruleRef")
        session.change_source("case-then-1", "ruleRef")

        await session.resolve_reference("case-then-0", _summary(documents["u-age"]))
        await session.resolve_reference("case-then-1", _summary(documents["u-age"]))

        assert session.checker.evaluations == 1

    @pytest.mark.asyncio
    async def test_load_error_leaves_tree_untouched(self, session, resolver, documents):
        """Test that a failed load changes nothing."""
        session.new_rule("condition")
        session.change_condition_kind("root-condition-0", "ruleRef")
        before = session.definition
        resolver.failures.add("u-adult")

        applied = await session.resolve_reference("root-condition-0", _summary(documents["u-adult"]))

        assert applied is False
        assert session.definition is before

    @pytest.mark.asyncio
    async def test_superseded_resolution_is_discarded(self, session, resolver, documents):
        """Test that a slow load finishing after a newer one is dropped."""
        session.new_rule("expression")
        session.change_source("root", "ruleRef")
        resolver.gates["u-age"] = asyncio.Event()

        slow = asyncio.create_task(session.resolve_reference("root", _summary(documents["u-age"])))
        await asyncio.sleep(0)
        assert await session.resolve_reference("root", _summary(documents["u-income"])) is True

        resolver.gates["u-age"].set()
        assert await slow is False
        assert session.node("root").rule_id == "INCOME_BAND"

    @pytest.mark.asyncio
    async def test_edit_during_resolution_wins(self, session, resolver, documents):
        """Test that clearing a reference while it loads discards the load."""
        session.new_rule("expression")
        session.change_source("root", "ruleRef")
        resolver.gates["u-age"] = asyncio.Event()

        pending = asyncio.create_task(session.resolve_reference("root", _summary(documents["u-age"])))
        await asyncio.sleep(0)
        session.clear_reference("root")
        resolver.gates["u-age"].set()

        assert await pending is False
        assert not session.node("root").is_resolved

    @pytest.mark.asyncio
    async def test_loading_another_rule_discards_pending(self, session, resolver, documents):
        """Test that opening a different rule makes pending loads stale."""
        session.new_rule("expression")
        session.change_source("root", "ruleRef")
        resolver.gates["u-age"] = asyncio.Event()

        pending = asyncio.create_task(session.resolve_reference("root", _summary(documents["u-age"])))
        await asyncio.sleep(0)
        session.load_rule(documents["u-income"])
        resolver.gates["u-age"].set()

        assert await pending is False
        assert session.definition == FieldRef("number", "T.INCOME")

    @pytest.mark.asyncio
    async def test_refresh_references(self, session, resolver, documents):
        """Test checking every reference of a loaded rule once per target."""
        stored = PredicateGroup(
            name="Main Condition",
            children=[
                RuleRefCondition(name="IS_ADULT", rule_ref=RuleRef("boolean", "IS_ADULT", "u-adult", 2)),
                RuleRefCondition(name="BROKEN", rule_ref=RuleRef("number", "BROKEN", "u-broken", 1)),
                RuleRefCondition(name="IS_ADULT", rule_ref=RuleRef("boolean", "IS_ADULT", "u-adult", 2)),
            ],
        )
        session.load_rule(_document("u-mine", "MINE", "condition", "boolean", stored))

        updated = await session.refresh_references()

        assert updated == 3
        assert sorted(resolver.loads) == [("u-adult", 2), ("u-broken", 1)]
        codes = [warning.code for warning in session.warnings_for("root-condition-1")]
        assert codes == ["internal_mismatch", "context_mismatch"]
        assert session.node("root-condition-1").name == "BROKEN"

        await session.refresh_references()
        assert len(resolver.loads) == 2

    @pytest.mark.asyncio
    async def test_edit_during_refresh_wins(self, session, resolver, documents):
        """Test that a reference turned into a predicate while checks load stays a predicate."""
        session.checker.check("u-income", 1, documents["u-income"])
        stored = PredicateGroup(
            name="Main Condition",
            children=[
                RuleRefCondition(name="IS_ADULT", rule_ref=RuleRef("boolean", "IS_ADULT", "u-adult", 2)),
                RuleRefCondition(name="INCOME_BAND", rule_ref=RuleRef("number", "INCOME_BAND", "u-income", 1)),
            ],
        )
        session.load_rule(_document("u-mine", "MINE", "condition", "boolean", stored))
        resolver.gates["u-adult"] = asyncio.Event()

        refresh = asyncio.create_task(session.refresh_references())
        await asyncio.sleep(0)
        session.change_condition_kind("root-condition-1", "condition")
        resolver.gates["u-adult"].set()

        assert await refresh == 1
        assert isinstance(session.node("root-condition-1"), Predicate)
        assert session.node("root-condition-0").rule_ref.internal_mismatch is False
        assert session.to_output()["definition"]["conditions"][1]["operator"] == "equal"

    @pytest.mark.asyncio
    async def test_rename_during_refresh_is_kept(self, session, resolver):
        """Test that check results land on the live node, not the one read before loading."""
        stored = PredicateGroup(
            name="Main Condition",
            children=[RuleRefCondition(name="IS_ADULT", rule_ref=RuleRef("boolean", "IS_ADULT", "u-adult", 2))],
        )
        session.load_rule(_document("u-mine", "MINE", "condition", "boolean", stored))
        resolver.gates["u-adult"] = asyncio.Event()

        refresh = asyncio.create_task(session.refresh_references())
        await asyncio.sleep(0)
        session.rename_condition("root-condition-0", "Grown up")
        resolver.gates["u-adult"].set()

        assert await refresh == 1
        node = session.node("root-condition-0")
        assert node.name == "Grown up"
        assert node.rule_ref.internal_mismatch is False

    @pytest.mark.asyncio
    async def test_refresh_rebuilds_warnings_once(self, session, monkeypatch):
        """Test that checking many references rebuilds warnings in a single pass."""
        stored = PredicateGroup(
            name="Main Condition",
            children=[
                RuleRefCondition(name=f"Adult {i}", rule_ref=RuleRef("boolean", "IS_ADULT", "u-adult", 2))
                for i in range(50)
            ],
        )
        session.load_rule(_document("u-mine", "MINE", "condition", "boolean", stored))
        passes = []
        collect = session._collect_warnings
        monkeypatch.setattr(session, "_collect_warnings", lambda: passes.append(1) or collect())

        assert await session.refresh_references() == 50
        assert len(passes) == 1

    @pytest.mark.asyncio
    async def test_removing_clause_discards_pending_resolution(self, session, resolver, documents):
        """Test that a load for a clause whose index shifted is dropped."""
        session.new_rule("case")
        session.add_when_clause()
        session.change_when_kind(1, "ruleRef")
        resolver.gates["u-adult"] = asyncio.Event()

        pending = asyncio.create_task(session.resolve_reference("case-when-1", _summary(documents["u-adult"])))
        await asyncio.sleep(0)
        session.remove_condition("case-when-0")
        resolver.gates["u-adult"].set()

        assert await pending is False
        assert len(session.definition.when_clauses) == 1
        remaining = session.node("case-when-0")
        assert isinstance(remaining, RuleRefCondition)
        assert not remaining.rule_ref.is_resolved

    @pytest.mark.asyncio
    async def test_resolution_without_reference_is_discarded(self, session, documents):
        """Test that resolving onto a predicate or a missing path changes nothing."""
        session.new_rule("condition")
        before = session.definition

        assert await session.resolve_reference("root-condition-0", _summary(documents["u-adult"])) is False
        assert await session.resolve_reference("root-condition-5", _summary(documents["u-adult"])) is False
        assert session.definition is before

    @pytest.mark.asyncio
    async def test_search_references(self, session):
        """Test searching targets of the allowed rule types."""
        session.new_rule("condition")
        results = await session.search_references("AGE")
        assert [summary.rule_id for summary in results] == ["AGE_BAND"]

    @pytest.mark.asyncio
    async def test_open_rule(self, session):
        """Test opening a stored rule through the resolver."""
        document = await session.open_rule("u-adult")

        assert document.rule_id == "IS_ADULT"
        assert session.is_new is False
        assert session.expansion.is_expanded("root")

    def test_reference_rule_types(self, session):
        """Test the rule types offered by the reference picker."""
        status = session.reference_rule_types()
        assert status.ok
        assert status.values == ["Reporting", "Validation"]

    def test_reference_rule_types_missing(self, settings):
        """Test that missing rule types are reported rather than raised."""
        session = EditingSession(RuleBuilderConfig(), settings=settings)
        status = session.reference_rule_types()

        assert status.ok is False
        assert status.key == "ruleTypes"

    def test_reference_rule_types_from_settings(self, settings):
        """Test falling back to the rule types in settings."""
        settings = settings.model_copy(update={"allowed_rule_types": ["Reporting"]})
        session = EditingSession(RuleBuilderConfig(), settings=settings)

        assert session.reference_rule_types().values == ["Reporting"]

    def test_clear_non_reference(self, session):
        """Test that clearing a node that is no reference raises."""
        session.new_rule("condition")
        with pytest.raises(RuleTreeError, match="No rule reference"):
            session.clear_reference("root-condition-0")


class TestPersistence:
    """Test output, saving and restoring."""

    def test_to_output(self, session):
        """Test the stored form of a new rule."""
        session.new_rule("condition", rule_id="MY_RULE", rule_type="Reporting")
        output = session.to_output()

        assert output["structure"] == "condition"
        assert output["metadata"]["id"] == "MY_RULE"
        assert output["definition"]["conditions"][0]["name"] == "Condition 1"

    def test_to_output_rejects_malformed_tree(self, session):
        """Test that a malformed tree cannot be output."""
        session.new_rule("expression")
        session.set_expression("root", ExpressionGroup("number", [Literal("number", 1)], []))
        with pytest.raises(StructuralInvariantError):
            session.to_output()

    @pytest.mark.asyncio
    async def test_save_and_restore(self, session):
        """Test that restoring writes the old content forward as a new version."""
        persistence = FakePersistence()
        session.new_rule("condition", rule_id="MY_RULE")

        created = await session.save(persistence)
        assert (created.uuid, created.version) == ("u-1", 1)
        assert session.document.is_persisted

        session.add_condition("root")
        updated = await session.save(persistence)
        assert updated.version == 2

        restored = await session.restore(persistence, 1)

        assert restored.version == 3
        assert session.document.version == 3
        assert len(session.definition.children) == 1
        assert [info.version for info in await persistence.list_versions("u-1")] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_restore_requires_saved_rule(self, session):
        """Test that an unsaved rule has nothing to restore."""
        session.new_rule("condition")
        with pytest.raises(RuleTreeError, match="Only a saved rule"):
            await session.restore(FakePersistence(), 1)
