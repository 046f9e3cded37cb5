"""Tests for component metadata."""

import json

import fse
from fse.adapters import ClassifierAdapter, KNearestNeighborsAdapter
from fse.meta import component, component_metadata, registered_components
from fse.selection import FeatureSelector
from fse.table import DatasetTable


def test_component_decorator():
    @component(name="Tracer", responsibility="Test component")
    class Tracer:
        pass

    meta = component_metadata(Tracer)
    assert meta == {"name": "Tracer", "responsibility": "Test component", "depends_on": []}
    assert component_metadata(Tracer()) == meta


def test_pipeline_components_are_annotated():
    for cls in (DatasetTable, FeatureSelector, ClassifierAdapter):
        meta = component_metadata(cls)
        assert meta is not None
        assert meta["responsibility"]

    # Subclasses inherit the adapter contract's metadata
    assert component_metadata(KNearestNeighborsAdapter)["name"] == "ClassifierAdapter"


def test_undecorated_class_has_no_metadata():
    assert component_metadata(object) is None


def test_registry_lists_pipeline_components():
    names = [meta["name"] for meta in registered_components()]
    for expected in ("DatasetTable", "FeatureSelector", "ClassifierAdapter", "EvaluationHarness"):
        assert expected in names

    by_name = {meta["name"]: meta for meta in registered_components()}
    assert by_name["ClassifierAdapter"]["cls"] == "ClassifierAdapter"
    assert fse.registered_components is registered_components


def test_registry_picks_up_new_components():
    @component(name="Recorder", responsibility="Records calls", depends_on=["DatasetTable"])
    class Recorder:
        pass

    (meta,) = [m for m in registered_components() if m["name"] == "Recorder"]
    assert meta["depends_on"] == ["DatasetTable"]
    assert meta["cls"].endswith("Recorder")

    # Returned dicts are copies and serialize as the runner writes them
    meta["depends_on"].append("X")
    assert component_metadata(Recorder)["depends_on"] == ["DatasetTable"]
    json.dumps(registered_components())
