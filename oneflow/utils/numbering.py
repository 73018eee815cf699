"""
Document Numbering

FLOW OVERVIEW
- next_document_number(model, today=None)
  • '<PREFIX>-YYYYMM-NNN': highest existing suffix for the month + 1, zero padded.
  • Sequences restart every month; a suffix wider than 3 digits keeps growing.
- next_task_number()
  • 'TASK-NNNNN' from the highest existing task number + 1.

The unique constraint on each number column is the final guard against two
requests picking the same value; callers surface the IntegrityError as a 409.
"""

from datetime import date

from ..models import db, Task


def _suffix(number):
    try:
        return int(number.rsplit('-', 1)[1])
    except (IndexError, ValueError):
        return 0


def _highest_suffix(column, prefix):
    existing = db.session.query(column).filter(column.like(f'{prefix}-%')).all()
    return max((_suffix(row[0]) for row in existing), default=0)


def next_document_number(model, today=None):
    """Next number for SalesOrder / PurchaseOrder / VendorBill / Invoice / Expense"""
    today = today or date.today()
    prefix = f'{model.NUMBER_PREFIX}-{today.strftime("%Y%m")}'
    column = getattr(model, model.number_attr)
    return f'{prefix}-{_highest_suffix(column, prefix) + 1:03d}'


def next_task_number():
    return f'TASK-{_highest_suffix(Task.task_id, "TASK") + 1:05d}'
