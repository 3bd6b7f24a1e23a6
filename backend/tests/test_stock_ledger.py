import pytest

from utils.errors import ApiError
from utils.stock_ledger import (
    MOVEMENT_IN,
    MOVEMENT_OUT,
    apply_movement,
    remove_movement,
    replace_movement,
    reverse_movement,
    signed_delta,
)


def test_signed_delta():
    assert signed_delta(MOVEMENT_IN, 5) == 5
    assert signed_delta(MOVEMENT_OUT, 5) == -5


def test_signed_delta_rejects_unknown_type():
    with pytest.raises(ValueError):
        signed_delta("sideways", 1)


def test_apply_in_and_out():
    assert apply_movement(100, MOVEMENT_IN, 20) == 120
    assert apply_movement(100, MOVEMENT_OUT, 30) == 70
    assert apply_movement(30, MOVEMENT_OUT, 30) == 0


def test_apply_out_beyond_stock_is_rejected():
    with pytest.raises(ApiError) as exc_info:
        apply_movement(70, MOVEMENT_OUT, 80)
    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "INSUFFICIENT_STOCK"
    assert exc_info.value.message == "Insufficient stock. Available: 70, Requested: 80"


def test_reverse_can_go_negative():
    assert reverse_movement(10, MOVEMENT_IN, 30) == -20
    assert reverse_movement(10, MOVEMENT_OUT, 30) == 40


def test_replace_matches_applying_edit_to_original_state():
    # 100 on hand before an "out 30" was recorded
    current = apply_movement(100, MOVEMENT_OUT, 30)
    after_reversal, final = replace_movement(current, MOVEMENT_OUT, 30, MOVEMENT_OUT, 50)
    assert after_reversal == 100
    assert final == apply_movement(100, MOVEMENT_OUT, 50) == 50


def test_replace_can_flip_direction():
    _, final = replace_movement(70, MOVEMENT_OUT, 30, MOVEMENT_IN, 10)
    assert final == 110


def test_replace_rejects_negative_final():
    with pytest.raises(ApiError) as exc_info:
        replace_movement(70, MOVEMENT_OUT, 30, MOVEMENT_OUT, 150)
    assert exc_info.value.code == "INSUFFICIENT_STOCK"


def test_replace_rejects_when_reversal_goes_negative():
    # 100 received, then 90 shipped: undoing the receipt would leave -90
    with pytest.raises(ApiError) as exc_info:
        replace_movement(10, MOVEMENT_IN, 100, MOVEMENT_IN, 150)
    assert exc_info.value.code == "INSUFFICIENT_STOCK"


def test_remove_restores_previous_quantity():
    assert remove_movement(70, MOVEMENT_OUT, 30) == 100
    assert remove_movement(120, MOVEMENT_IN, 20) == 100


def test_remove_rejects_negative_result():
    with pytest.raises(ApiError) as exc_info:
        remove_movement(70, MOVEMENT_IN, 100)
    assert exc_info.value.code == "NEGATIVE_STOCK"
    assert exc_info.value.message == "Cannot delete movement that would result in negative stock"
