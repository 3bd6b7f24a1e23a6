# utils/stock_ledger.py
"""Quantity arithmetic for stock movements.

A movement is a positive ``quantity`` plus a direction: ``in`` adds to the
product's on-hand quantity, ``out`` removes from it. These helpers compute
the resulting on-hand quantity and refuse any result below zero. They do not
touch the database; the stock routes call them inside the transaction that
persists the result.
"""
from typing import Tuple

from fastapi import status

from utils.errors import ApiError

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)


def signed_delta(movement_type: str, quantity: int) -> int:
    if movement_type == MOVEMENT_IN:
        return quantity
    if movement_type == MOVEMENT_OUT:
        return -quantity
    raise ValueError(f"Unknown movement type: {movement_type!r}")


def _insufficient(message: str) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, "INSUFFICIENT_STOCK", message)


def apply_movement(current: int, movement_type: str, quantity: int) -> int:
    """Quantity after applying a movement to ``current``."""
    new_quantity = current + signed_delta(movement_type, quantity)
    if new_quantity < 0:
        raise _insufficient(f"Insufficient stock. Available: {current}, Requested: {quantity}")
    return new_quantity


def reverse_movement(current: int, movement_type: str, quantity: int) -> int:
    """Quantity as if the movement had never happened. May be negative."""
    return current - signed_delta(movement_type, quantity)


def replace_movement(current: int, old_type: str, old_quantity: int,
                     new_type: str, new_quantity: int) -> Tuple[int, int]:
    """Undo an existing movement and apply its edited version.

    Returns ``(after_reversal, final)``. Both must be non-negative.
    """
    after_reversal = reverse_movement(current, old_type, old_quantity)
    if after_reversal < 0:
        raise _insufficient(
            f"Insufficient stock to reverse the original movement. "
            f"Available: {current}, Original {old_type}: {old_quantity}"
        )
    final = after_reversal + signed_delta(new_type, new_quantity)
    if final < 0:
        raise _insufficient(
            f"Insufficient stock. Available after reversal: {after_reversal}, Requested: {new_quantity}"
        )
    return after_reversal, final


def remove_movement(current: int, movement_type: str, quantity: int) -> int:
    """Quantity after deleting a movement; refuses to go below zero."""
    new_quantity = reverse_movement(current, movement_type, quantity)
    if new_quantity < 0:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "NEGATIVE_STOCK",
            "Cannot delete movement that would result in negative stock",
        )
    return new_quantity
