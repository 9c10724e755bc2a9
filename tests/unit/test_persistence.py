"""Tests for controller persistence (JSON documents)."""

import json
from pathlib import Path

import pytest

from fsmsplit.core.constants import DOCUMENT_VERSION
from fsmsplit.core.exceptions import PersistenceError
from fsmsplit.core.persistence import (
    JsonControllerStore,
    controller_from_dict,
    controller_to_dict,
    load_controller,
    save_controller,
)
from fsmsplit.core.types import BlendingMode, ConditionMode, Controller, InterruptionSource


class TestControllerDocument:
    """Tests for converting controllers to and from documents."""

    def test_document_shape(self, locomotion: Controller) -> None:
        """Transitions reference destinations by name."""
        data = controller_to_dict(locomotion)

        assert data["version"] == DOCUMENT_VERSION
        assert data["name"] == "Hero"
        assert data["parameters"] == [
            {"name": "Enter", "type": "trigger"},
            {"name": "Speed", "type": "float"},
        ]
        machine = data["layers"][0]["state_machine"]
        assert machine["default_state"] == "Idle"
        idle = machine["states"][0]
        assert idle["transitions"][0]["destination"] == "Walk"
        assert idle["behaviours"] == [
            {"type": "FootstepEmitter", "properties": {"volume": 0.4}}
        ]
        assert machine["any_state_transitions"][0]["destination"] == "Idle"

    def test_reloaded_controller_keeps_structure(self, locomotion: Controller) -> None:
        """Loading a document rebuilds states, links and layer settings."""
        restored = controller_from_dict(controller_to_dict(locomotion))

        machine = restored.layers[0].state_machine
        assert list(machine.states) == ["Idle", "Walk", "Run", "Attack"]
        assert machine.default_state is machine.states["Idle"]
        to_run = machine.states["Walk"].transitions[0]
        assert to_run.destination is machine.states["Run"]
        assert to_run.interruption_source is InterruptionSource.DESTINATION
        assert to_run.conditions[0].mode is ConditionMode.GREATER
        assert machine.any_state_transitions[0].destination is machine.states["Idle"]
        assert machine.states["Idle"].behaviours[0].properties == {"volume": 0.4}

        carry = restored.layers[1]
        assert carry.blending_mode is BlendingMode.ADDITIVE
        assert carry.synced_layer_index == 0
        assert carry.avatar_mask == "masks/face.mask"

    def test_unknown_destination_rejected(self, locomotion: Controller) -> None:
        data = controller_to_dict(locomotion)
        data["layers"][0]["state_machine"]["states"][0]["transitions"][0]["destination"] = "Fly"

        with pytest.raises(PersistenceError, match="unknown state 'Fly'"):
            controller_from_dict(data)

    def test_unknown_default_state_rejected(self, locomotion: Controller) -> None:
        data = controller_to_dict(locomotion)
        data["layers"][0]["state_machine"]["default_state"] = "Fly"

        with pytest.raises(PersistenceError, match="Default state 'Fly'"):
            controller_from_dict(data)

    def test_unsupported_version_rejected(self, locomotion: Controller) -> None:
        data = controller_to_dict(locomotion)
        data["version"] = "9.9"

        with pytest.raises(PersistenceError, match="version"):
            controller_from_dict(data)

    def test_malformed_document_rejected(self) -> None:
        """Missing keys and bad enum values raise PersistenceError."""
        with pytest.raises(PersistenceError, match="malformed"):
            controller_from_dict({"parameters": []})

        with pytest.raises(PersistenceError, match="malformed"):
            controller_from_dict({"name": "X", "parameters": [{"name": "p", "type": "string"}]})

    def test_duplicate_state_names_rejected(self) -> None:
        data = {
            "name": "X",
            "layers": [
                {"name": "Base Layer", "state_machine": {"states": [{"name": "A"}, {"name": "A"}]}}
            ],
        }

        with pytest.raises(PersistenceError, match="already exists"):
            controller_from_dict(data)


class TestLoadAndSave:
    """Tests for file-level load and save."""

    def test_save_then_load(self, tmp_path: Path, locomotion: Controller) -> None:
        path = tmp_path / "nested" / "hero.json"

        save_controller(locomotion, path)
        restored = load_controller(path)

        assert restored.name == "Hero"
        assert [layer.name for layer in restored.layers] == ["Base Layer", "EyeBlink"]
        assert not path.with_suffix(".tmp").exists()

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(PersistenceError, match="not found"):
            load_controller(tmp_path / "missing.json")

    def test_load_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError, match="not valid JSON"):
            load_controller(path)

    def test_load_non_object_document(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")

        with pytest.raises(PersistenceError, match="malformed"):
            load_controller(path)

    def test_unserializable_motion_fails_cleanly(
        self, tmp_path: Path, locomotion: Controller
    ) -> None:
        """A motion reference that JSON cannot store raises and leaves no file."""
        locomotion.layers[0].state_machine.states["Idle"].motion = object()
        path = tmp_path / "hero.json"

        with pytest.raises(PersistenceError, match="Failed to save"):
            save_controller(locomotion, path)

        assert not path.exists()
        assert not path.with_suffix(".tmp").exists()


class TestJsonControllerStore:
    """Tests for the directory-backed sink."""

    def test_save_writes_named_document(self, tmp_path: Path, locomotion: Controller) -> None:
        store = JsonControllerStore(tmp_path / "split")

        path = store.save(locomotion, "Hero0")

        assert path == tmp_path / "split" / "Hero0.json"
        assert load_controller(path).name == "Hero"
