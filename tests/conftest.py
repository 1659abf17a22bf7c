"""Shared fixtures for the Ophtha-Timeline test suite."""

import json

import pytest

from src.domain.visit_record import PatientRecord


@pytest.fixture
def make_record():
    """Factory building a PatientRecord from raw (storage-shaped) visit dicts."""
    def _make(visits, uid="P-1001", **header):
        patient = {"uid": uid, **header}
        return PatientRecord.model_validate({"p": patient, "visits": visits})
    return _make


@pytest.fixture
def sample_document():
    """A realistic three-visit record in storage shape, visits out of date order."""
    return {
        "p": {"uid": "P-1001", "mr": "MR-77", "v": 3, "f": "2023-01-10", "l": "2023-09-02"},
        "visits": [
            {
                "v": 2,
                "d": "2023-05-14",
                "c": "F1",
                "diag": [["Diabetic Macular Edema"], [], ["Diabetic Retinopathy"]],
                "vi": {"dist": [{"va": "618"}, {"va": "66"}, None], "nr": [{"va": "N8"}, None, None]},
                "at": {"lens": "Early cataract", "ac": "Quiet"},
                "fu": {"me": "Clear", "di": "Healthy"},
                "m": [{"name": "Timolol", "dos": "0.5%", "eye": 1, "fre": 2}],
                "pr": {"Las": [[], [], []], "inj": [[{"procedure_type": "Eylea"}], [], []], "surg": [[], [], []]},
                "inv": {"iop": ["18", "Not Measurable"], "sp": {"r": "RE 320um LE 280um"}},
                "s": {"h": "Diabetes; Hypertension"},
            },
            {
                "v": 1,
                "d": "2023-01-10",
                "c": "Initial",
                "diag": [["Diabetic Macular Edema"], [], ["Diabetic Retinopathy"]],
                "vi": {"dist": [{"va": "636"}, {"va": "66"}, None]},
                "at": {"lens": "Clear", "ac": "Quiet"},
                "fu": {"me": "Clear", "di": "Healthy"},
                "m": [{"name": "Timolol", "eye": 1}],
                "pr": {"act": [["Avastin"], []]},
                "inv": {"iop": ["22", "16"], "sp": {"r": "CMT 410"}},
                "s": {"h": "Diabetes; Remarks"},
            },
            {
                "v": 3,
                "d": "2023-09-02",
                "c": "F2",
                "diag": [[], [], ["Diabetic Retinopathy"]],
                "vi": {"dist": [{"ucva": "CF"}, {"va": "69"}, None]},
                "at": {"lens": "Early cataract", "ac": "Quiet"},
                "fu": {"me": "Hazy", "di": "Healthy"},
                "pr": {"act": [["Avastin", "none"], []]},
                "inv": {"iop": "15"},
            },
        ],
    }


@pytest.fixture
def sample_record(sample_document):
    return PatientRecord.model_validate(sample_document)


@pytest.fixture
def patient_dir(tmp_path, sample_document):
    """A data directory holding one bare record and one API envelope."""
    data_dir = tmp_path / "patient_data"
    data_dir.mkdir()
    (data_dir / "P-1001.json").write_text(json.dumps(sample_document), encoding="utf-8")

    envelope_document = {
        "p": {"uid": "P-2002"},
        "visits": [{"d": "2022-03-01", "fu": {"me": "Clear"}}],
    }
    envelope = {"uid": "P-2002", "totalvisit": 1, "jsonData": json.dumps(envelope_document)}
    (data_dir / "P-2002.json").write_text(json.dumps(envelope), encoding="utf-8")
    return data_dir
