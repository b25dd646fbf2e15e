import pytest

from bias_audit.policy import AlertThresholds, LabelTaxonomy


def test_default_taxonomy():
    taxonomy = LabelTaxonomy.default()
    assert taxonomy.labels == {"Benign", "Malignant", "Rash", "Infection"}
    assert taxonomy.positive_labels == {"Malignant", "Infection"}
    assert taxonomy.is_positive("Malignant")
    assert not taxonomy.is_positive("Benign")
    assert not taxonomy.is_positive("Unheard of")
    assert not taxonomy.is_known("Unheard of")


def test_positive_labels_must_be_in_vocabulary():
    with pytest.raises(ValueError):
        LabelTaxonomy(labels={"Benign"}, positive_labels={"Malignant"})


def test_positive_labels_required():
    with pytest.raises(ValueError):
        LabelTaxonomy(labels={"Benign"}, positive_labels=set())


def test_default_thresholds():
    thresholds = AlertThresholds.default()
    assert (thresholds.parity, thresholds.opportunity, thresholds.calibration) == (0.15, 0.15, 0.10)


def test_threshold_range():
    with pytest.raises(ValueError):
        AlertThresholds(parity=1.5)
