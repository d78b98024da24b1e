from __future__ import annotations

import pytest
import torch

from segment_digits.errors import InvalidDigit, InvalidPatternLength
from segment_digits.inference.predictor import argmax, predict, predict_pattern
from segment_digits.model import build_model, fresh_parameters
from segment_digits.training import build_training_set, train


def test_predict_returns_a_distribution() -> None:
    spec = build_model([8])
    params = fresh_parameters(spec, seed=0)
    for d in range(10):
        probs = predict(spec, params, d)
        assert len(probs) == 10
        assert all(p >= 0.0 for p in probs)
        assert abs(sum(probs) - 1.0) < 1e-5


def test_predict_rejects_bad_digit() -> None:
    spec = build_model([])
    params = fresh_parameters(spec, seed=0)
    with pytest.raises(InvalidDigit):
        predict(spec, params, 10)
    with pytest.raises(InvalidDigit):
        predict(spec, params, -1)


def test_predict_leaves_parameters_unchanged() -> None:
    spec = build_model([4])
    params = fresh_parameters(spec, seed=3)
    before = {k: v.clone() for k, v in params.tensors.items()}
    predict(spec, params, 5)
    for k, v in params.tensors.items():
        assert torch.equal(v, before[k])


def test_predict_pattern_checks_length_only() -> None:
    spec = build_model([4])
    params = fresh_parameters(spec, seed=0)
    probs = predict_pattern(spec, params, [0.5, 0, 1, 0, 0, 1, 0])
    assert abs(sum(probs) - 1.0) < 1e-5
    with pytest.raises(InvalidPatternLength):
        predict_pattern(spec, params, [1, 0])


def test_trained_model_predicts_each_digit() -> None:
    spec = build_model([32])
    x, y = build_training_set()
    params = train(spec, x, y, {"passes": 300, "lr": 0.01})
    for d in range(10):
        assert argmax(predict(spec, params, d)) == d


def test_argmax_prefers_first_on_ties() -> None:
    assert argmax((0.1, 0.4, 0.4, 0.1)) == 1
    assert argmax((1.0,)) == 0


def test_in_place_edit_of_exposed_tensors_does_not_change_predictions() -> None:
    spec = build_model([4])
    params = fresh_parameters(spec, seed=5)
    before = predict(spec, params, 3)
    params.tensors["2.bias"][3] += 100.0
    params.state_dict()["2.bias"][3] += 100.0
    assert predict(spec, params, 3) == before
