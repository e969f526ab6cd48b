"""
Integration tests for FormSession: the full initialize / change / submit cycle.
"""

import pytest

from formio_engine import FormSession, SessionNotInitializedError
from formio_engine.config import EngineConfig
from formio_engine.runtime.session import SessionState, seed_defaults
from formio_engine.runtime.tree import ensure_nodes


class Recorder:
    """Collects callback invocations in order."""

    def __init__(self):
        self.events = []

    def session(self, **kwargs):
        return FormSession(
            on_change=lambda data: self.events.append(("change", data)),
            on_validation=lambda errors: self.events.append(("validation", errors)),
            on_submit=lambda data: self.events.append(("submit", data)),
            **kwargs,
        )

    def kinds(self):
        return [kind for kind, _ in self.events]

    def last(self, kind):
        return [payload for event, payload in self.events if event == kind][-1]


@pytest.fixture
def recorder():
    return Recorder()


class TestInitialize:
    """First snapshot."""

    def test_seeds_defaults_and_publishes(self, recorder, contact_schema):
        """Initialize fills defaults and publishes state."""
        session = recorder.session()
        session.initialize(contact_schema, {"name": "Ada"})

        assert session.is_ready
        assert session.state == SessionState.READY
        assert session.data == {"name": "Ada", "contactBy": "email"}
        assert session.errors == []
        assert session.visibility["phone"] is True
        assert recorder.kinds() == ["change", "validation"]
        assert recorder.last("change") == {"name": "Ada", "contactBy": "email"}

    def test_initial_data_is_not_mutated(self, contact_schema):
        """The caller's data is copied."""
        initial = {"name": "Ada"}
        FormSession().initialize(contact_schema, initial)
        assert initial == {"name": "Ada"}

    def test_explicit_null_is_kept(self, contact_schema):
        """Explicit nulls are not replaced by defaults."""
        session = FormSession()
        session.initialize(contact_schema, {"name": "Ada", "contactBy": None})
        assert session.data["contactBy"] is None

    def test_initial_errors(self, recorder, contact_schema):
        """Errors are published on initialize."""
        session = recorder.session()
        session.initialize(contact_schema)
        assert [error.field for error in recorder.last("validation")] == ["name"]

    def test_grid_defaults_and_calculations(self, order_schema):
        """Grid rows are calculated on initialize."""
        session = FormSession()
        session.initialize(order_schema, {"items": [{"sku": "a", "price": 4}]})
        assert session.data["items"] == [{"sku": "a", "price": 4, "qty": 1, "lineTotal": 4}]
        assert session.data["total"] == 4
        assert session.last_calculation.converged

    def test_reinitialize_resets_data(self, contact_schema):
        """A second initialize starts over."""
        session = FormSession()
        session.initialize(contact_schema, {"name": "Ada"})
        session.initialize({"components": [{"type": "textfield", "key": "city"}]}, {"city": "Oslo"})
        assert session.data == {"city": "Oslo"}
        assert session.errors == []

    def test_component_list_schema(self):
        """A bare component list is accepted."""
        session = FormSession()
        session.initialize([{"type": "textfield", "key": "a", "defaultValue": "x"}])
        assert session.data == {"a": "x"}


class TestFieldChange:
    """Edits recompute the snapshot."""

    def test_change_recalculates_and_revalidates(self, recorder, contact_schema):
        """A change runs the full cycle and publishes."""
        session = recorder.session()
        session.initialize(contact_schema, {"name": "Ada"})
        recorder.events.clear()

        data = session.on_field_change("contactBy", "phone")

        assert data["contactBy"] == "phone"
        assert session.visibility["phone"] is False
        assert [error.field for error in session.errors] == ["phone"]
        assert recorder.kinds() == ["change", "validation"]

    def test_error_clears_after_fix(self, contact_schema):
        """Fixing a field removes its error."""
        session = FormSession()
        session.initialize(contact_schema)
        assert [error.field for error in session.errors] == ["name"]
        session.on_field_change("name", "Ada")
        assert session.errors == []

    def test_calculated_total_follows_edits(self):
        """Totals follow grid edits."""
        session = FormSession()
        session.initialize(
            [
                {"type": "number", "key": "a"},
                {"type": "number", "key": "b"},
                {"type": "number", "key": "total", "calculateValue": "value = data.a + data.b"},
            ],
            {"a": 2, "b": 3},
        )
        assert session.data["total"] == 5
        session.on_field_change("b", 10)
        assert session.data["total"] == 12

    def test_snapshots_are_isolated(self, contact_schema):
        """Published snapshots do not share state."""
        session = FormSession()
        session.initialize(contact_schema, {"name": "Ada"})

        returned = session.on_field_change("tags", ["a"])
        returned["tags"].append("b")
        session.data["name"] = "Changed"
        session.errors.append("junk")

        assert session.data["tags"] == ["a"]
        assert session.data["name"] == "Ada"
        assert session.errors == []

    def test_failing_scripts_do_not_raise(self):
        """Broken scripts never escape the session."""
        session = FormSession()
        session.initialize([
            {"type": "textfield", "key": "a", "customConditional": "show = data.x.y"},
            {"type": "number", "key": "b", "calculateValue": "value = ((("},
            {"type": "textfield", "key": "c", "validate": {"custom": "valid = row.q.r"}},
        ])
        session.on_field_change("c", "text")
        assert session.visibility["a"] is False
        assert "b" not in session.data
        assert session.errors == []


class TestSubmit:
    """Submission gate."""

    def test_blocked_by_errors(self, recorder, contact_schema):
        """Submit is rejected while errors remain."""
        session = recorder.session()
        session.initialize(contact_schema)
        recorder.events.clear()

        assert session.submit() is False
        assert "submit" not in recorder.kinds()
        assert recorder.kinds() == ["validation"]
        assert len(recorder.last("validation")) == 1

    def test_accepted(self, recorder, contact_schema):
        """A valid submission is accepted."""
        session = recorder.session()
        session.initialize(contact_schema, {"name": "Ada"})
        recorder.events.clear()

        assert session.submit() is True
        assert recorder.kinds() == ["submit"]
        assert recorder.last("submit") == {"name": "Ada", "contactBy": "email"}

    def test_custom_messages_via_config(self, contact_schema):
        """Config messages are used for session errors."""
        session = FormSession(config=EngineConfig(messages={"REQUIRED": "Please enter {label}"}))
        session.initialize(contact_schema)
        assert session.errors[0].message == "Please enter Name"

    def test_translate_hook(self, contact_schema):
        """The session passes its translate hook through."""
        session = FormSession(translate=lambda key, fallback: "T:" + fallback)
        session.initialize(contact_schema)
        assert session.errors[0].message == "T:Name is required"


class TestLifecycle:
    """Guarding and wizard pages."""

    @pytest.mark.parametrize("operation", [
        lambda session: session.on_field_change("a", 1),
        lambda session: session.submit(),
        lambda session: session.validate_page(0),
    ])
    def test_requires_initialize(self, operation):
        """Operations before initialize raise."""
        with pytest.raises(SessionNotInitializedError):
            operation(FormSession())

    def test_validate_page(self):
        """Page validation only checks that page."""
        session = FormSession()
        session.initialize({
            "display": "wizard",
            "components": [
                {"type": "panel", "key": "page1", "input": False,
                 "components": [{"type": "textfield", "key": "first", "required": True}]},
                {"type": "panel", "key": "page2", "input": False,
                 "components": [{"type": "textfield", "key": "second", "required": True}]},
            ],
        })
        assert [page.key for page in session.pages] == ["page1", "page2"]
        assert [error.field for error in session.validate_page(1)] == ["second"]
        assert [error.field for error in session.errors] == ["first", "second"]

        with pytest.raises(IndexError):
            session.validate_page(2)

    def test_util_helpers_reach_scripts(self):
        """Session util helpers are bound in scripts."""
        session = FormSession(util={"shout": lambda text: text.upper()})
        session.initialize(
            [{"type": "textfield", "key": "loud", "calculateValue": "value = util.shout(data.name || '')"}],
            {"name": "ada"},
        )
        assert session.data["loud"] == "ADA"


class TestSeedDefaults:
    """Default seeding rules."""

    def test_only_missing_keys(self):
        """Defaults fill only absent keys."""
        nodes = ensure_nodes([
            {"key": "a", "defaultValue": 1},
            {"key": "b", "defaultValue": 2},
            {"key": "c"},
            {"type": "content", "key": "html", "input": False, "defaultValue": "x"},
        ])
        assert seed_defaults(nodes, {"b": 5}) == {"a": 1, "b": 5}

    def test_defaults_are_copies(self):
        """Seeded defaults are independent copies."""
        nodes = ensure_nodes([{"key": "tags", "defaultValue": []}])
        first = seed_defaults(nodes)
        first["tags"].append("x")
        assert seed_defaults(nodes) == {"tags": []}
