import logging

import pytest

FULL_BUNDLE = (
    "runs/r1/before_click.png",
    "runs/r1/after_click.png",
    "runs/r1/dom_diff_click.json",
)

QUIET_SIGNALS = {
    "navigationChanged": False,
    "meaningfulDomChange": False,
    "feedbackSeen": False,
    "consoleErrors": [],
    "network": {"successfulRequests": 0, "failedRequests": 0},
    "uiSignals": {},
}


def button_record(**overrides):
    record = {
        "tagName": "BUTTON",
        "visible": True,
        "boundingBox": {"width": 120, "height": 32},
        "hasOnClick": True,
        "ariaLabel": "Save",
    }
    record.update(overrides)
    return record


def observation_record(obs_id="exp-1", record=None, signals=None, files=FULL_BUNDLE, **overrides):
    data = {
        "id": obs_id,
        "type": "interaction",
        "action": "click",
        "attempted": True,
        "actionSuccess": True,
        "signals": dict(QUIET_SIGNALS) if signals is None else signals,
        "evidenceFiles": list(files),
        "evidence": {"interactionIntent": {"record": record or button_record()}},
    }
    data.update(overrides)
    return data


def expectation_record(exp_id="exp-1", **overrides):
    data = {
        "id": exp_id,
        "kind": "click",
        "value": "#save",
        "source": {"file": "src/components/Toolbar.jsx", "line": 12, "column": 4},
        "confidenceHint": 0.9,
        "selectorHint": "#save",
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_button():
    return button_record


@pytest.fixture
def make_observation():
    return observation_record


@pytest.fixture
def make_expectation():
    return expectation_record


@pytest.fixture
def quiet_signals():
    return dict(QUIET_SIGNALS)


@pytest.fixture
def full_bundle():
    return list(FULL_BUNDLE)


@pytest.fixture(autouse=True)
def propagate_package_logs(monkeypatch):
    """Let caplog see records from the package logger, which setup_logging detaches from root."""
    monkeypatch.setattr(logging.getLogger("truthgate"), "propagate", True)
