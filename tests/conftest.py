"""Shared test fixtures for the SinkVerdict test suite."""

import sys
import pytest
from pathlib import Path

# Ensure verdictengine is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from verdictengine.models import ClassifierConfig, SinkContext
from verdictengine.dataflow.transforms import Domain, TransformRegistry, reset_default_registry
from verdictengine.dataflow.path import (
    PathDescriptor, Source, NumericOp, StringOp, SinkTag, Literal, SubPath, BranchGuard,
)
from verdictengine.dataflow.aggregator import TaintClassifier

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def string_source(label='request.getParameter("q")', **kwargs):
    """An untrusted string source."""
    return Source(label=label, domain=Domain.STRING, **kwargs)


def int_source(label="args[0]", numeric_type="int", **kwargs):
    """An untrusted integer source."""
    return Source(label=label, domain=Domain.NUMERIC, numeric_type=numeric_type, **kwargs)


def make_path(*operations, branches=(), path_id="path-1"):
    """Build a descriptor from operations."""
    return PathDescriptor(path_id=path_id, operations=tuple(operations), branches=tuple(branches))


def sub(*operations):
    """A sub-path operand."""
    return SubPath(tuple(operations))


def lit(value):
    return Literal(value)


@pytest.fixture(autouse=True)
def fresh_default_registry():
    """Each test starts with an unfrozen process-wide registry."""
    reset_default_registry()
    yield
    reset_default_registry()


@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def registry():
    """A registry with every builtin transform, not yet frozen."""
    return TransformRegistry.with_builtins()


@pytest.fixture
def config():
    return ClassifierConfig(loop_ceiling=1000)


@pytest.fixture
def classifier(config, registry):
    """Classifier with K = 1000."""
    return TaintClassifier(config, registry)


@pytest.fixture
def raw_html_path():
    """Request parameter written straight into the page."""
    return make_path(
        string_source(),
        SinkTag(SinkContext.HTML_BODY),
        path_id="xss-raw",
    )


@pytest.fixture
def escaped_html_path():
    """HTML-escaped, then truncated to 20 characters."""
    return make_path(
        string_source(),
        StringOp("html-escape"),
        StringOp("truncate", args={"max_length": 20}),
        SinkTag(SinkContext.HTML_BODY),
        path_id="xss-escaped",
    )


@pytest.fixture
def guarded_allow_list_path():
    """Allow-list check whose passing branch writes the value."""
    return make_path(
        string_source(),
        StringOp("allow-list", args={"members": ["red", "green", "blue"]}),
        SinkTag(SinkContext.HTML_BODY, branch=0),
        branches=[BranchGuard(validator=1, passed=True)],
        path_id="xss-allow-list",
    )


@pytest.fixture
def modulo_loop_path():
    """for (i = 0; i < abs(n) % 100; i++)"""
    return make_path(
        int_source(),
        NumericOp("abs"),
        NumericOp("mod", operands=(lit(100),)),
        SinkTag(SinkContext.LOOP_BOUND),
        path_id="loop-modulo",
    )


@pytest.fixture
def sample_paths_file(tmp_path):
    """Copy the fixture path file to tmp and return its path."""
    content = (FIXTURES_DIR / "paths.yaml").read_text()
    target = tmp_path / "paths.yaml"
    target.write_text(content)
    return target


@pytest.fixture
def sample_config_file(tmp_path):
    """Copy the fixture config to tmp and return its path."""
    content = (FIXTURES_DIR / "sinkverdict.yaml").read_text()
    target = tmp_path / "sinkverdict.yaml"
    target.write_text(content)
    return target
