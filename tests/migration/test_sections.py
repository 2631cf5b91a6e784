from __future__ import annotations

from quizsys.migration.sections import normalize_consensus_section, normalize_council_section


def test_consensus_defaults_fill_missing_options() -> None:
    section = normalize_consensus_section({"enabled": True, "minAgreement": 2})

    assert section["enabled"] is True
    assert section["models"] == []
    assert section["minModelsRequired"] == 2
    assert section["consensusThreshold"] == 0.66
    assert section["maxIterations"] == 3
    assert section["enableSourceValidation"] is False
    assert section["enableCaching"] is True
    assert section["showAuditTrail"] is True
    assert section["fallbackToSingleModel"] is True
    assert section["minAgreement"] == 2
    assert "privacyPreferences" not in section


def test_consensus_malformed_options_fall_back() -> None:
    section = normalize_consensus_section(
        {
            "enabled": "yes",
            "consensusThreshold": "high",
            "maxIterations": 5,
            "enableCaching": False,
            "models": "oops",
        }
    )

    assert section["enabled"] is False
    assert section["consensusThreshold"] == 0.66
    assert section["maxIterations"] == 5
    assert section["enableCaching"] is False
    assert section["models"] == []


def test_privacy_preferences_are_cleaned() -> None:
    section = normalize_consensus_section(
        {
            "privacyPreferences": {
                "privacyWarningAcknowledged": True,
                "privacyWarningAcknowledgedAt": "yesterday",
                "approvedProviders": ["OPENAI", 7, None, "OLLAMA"],
            }
        }
    )

    assert section["privacyPreferences"] == {
        "privacyWarningAcknowledged": True,
        "localOnlyMode": False,
        "approvedProviders": ["OPENAI", "OLLAMA"],
    }


def test_council_phase_timeouts_fill_missing_phases() -> None:
    section = normalize_council_section(
        {"phaseTimeouts": {"parallelQuery": 30000, "critique": "slow", "ranking": 45000}}
    )

    assert section["phaseTimeouts"] == {
        "parallelQuery": 30000,
        "critique": 60000,
        "ranking": 45000,
        "synthesis": 60000,
    }


def test_council_non_object_timeouts_and_missing_chair() -> None:
    section = normalize_council_section({"enabled": True, "phaseTimeouts": 5})

    assert section["enabled"] is True
    assert section["phaseTimeouts"]["synthesis"] == 60000
    assert section["enableCritique"] is True
    assert section["enableRanking"] is True
    assert section["showDebateTrail"] is True
    assert section["chairModel"] == {"selectionStrategy": "highest-ranked", "synthesisWeight": 1.0}


def test_council_keeps_unknown_keys_and_chair() -> None:
    chair = {"selectionStrategy": "configured", "configuredChairId": "c1", "synthesisWeight": 1.0}
    section = normalize_council_section({"chairModel": chair, "councilModels": [], "note": None})

    assert section["chairModel"] == chair
    assert section["councilModels"] == []
    assert section["note"] is None
