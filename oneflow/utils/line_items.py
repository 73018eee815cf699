"""
Line Item Arithmetic

FLOW OVERVIEW
- compute_line(quantity, unit_price, tax_percent) -> LineAmounts
  • line_total = quantity × unit_price
  • tax_amount = line_total × tax_percent / 100
  • line_grand_total = line_total + tax_amount
- compute_totals(amounts) -> DocumentTotals (sums of the three line amounts).
- build_lines(line_model, raw_lines, product_flag, allow_tasks, project_id)
  • Validates request lines, resolves products/tasks, returns model rows + totals.
  • Raises LineItemError carrying field errors.

Money is Decimal quantized to 2 places with ROUND_HALF_UP.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Tuple

from ..models import db, Product, Task
from .validators import FieldErrors, parse_decimal, parse_int, validate_text

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0')


def quantize(value) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class LineAmounts:
    line_total: Decimal
    tax_amount: Decimal
    line_grand_total: Decimal


@dataclass
class DocumentTotals:
    subtotal: Decimal
    total_tax: Decimal
    grand_total: Decimal

    def to_dict(self):
        return {
            'subtotal': float(self.subtotal),
            'total_tax': float(self.total_tax),
            'grand_total': float(self.grand_total),
        }


class LineItemError(ValueError):
    """Request lines failed validation"""

    def __init__(self, errors):
        super().__init__('Invalid line items')
        self.errors = errors


def compute_line(quantity, unit_price, tax_percent=ZERO) -> LineAmounts:
    line_total = quantize(Decimal(quantity) * Decimal(unit_price))
    tax_amount = quantize(line_total * Decimal(tax_percent or ZERO) / Decimal('100'))
    return LineAmounts(line_total, tax_amount, line_total + tax_amount)


def compute_totals(amounts: Iterable[LineAmounts]) -> DocumentTotals:
    subtotal = ZERO
    total_tax = ZERO
    for amount in amounts:
        subtotal += amount.line_total
        total_tax += amount.tax_amount
    subtotal = quantize(subtotal)
    total_tax = quantize(total_tax)
    return DocumentTotals(subtotal, total_tax, subtotal + total_tax)


def _resolve_source(raw, prefix, errors, product_flag, allow_tasks, project_id):
    """Find the product (or, for invoices, the task) a line bills"""
    product_id = errors.check(f'{prefix}.product_id', parse_int(raw.get('product_id'), 'Product'))
    task_id = None
    if allow_tasks:
        task_id = errors.check(f'{prefix}.task_id', parse_int(raw.get('task_id'), 'Task'))

    if product_id is None and task_id is None:
        errors.add(f'{prefix}.product_id', 'Product is required')
        return None, None

    product = task = None
    if product_id is not None:
        product = db.session.get(Product, product_id)
        if product is None:
            errors.add(f'{prefix}.product_id', f'Product {product_id} not found')
        elif product_flag and not getattr(product, product_flag):
            kind = product_flag.replace('type_', '')
            errors.add(f'{prefix}.product_id', f'{product.name} is not a {kind} product')
    if task_id is not None:
        task = db.session.get(Task, task_id)
        if task is None:
            errors.add(f'{prefix}.task_id', f'Task {task_id} not found')
        elif project_id is not None and task.project_id != project_id:
            errors.add(f'{prefix}.task_id', 'Task does not belong to the selected project')
            task = None
    return product, task


def build_lines(line_model, raw_lines, product_flag=None, allow_tasks=False,
                project_id=None) -> Tuple[List, DocumentTotals]:
    """
    Validate request lines and build unsaved line rows.

    Args:
        line_model: SalesOrderLine / PurchaseOrderLine / VendorBillLine / InvoiceLine
        raw_lines: list of dicts from the request body
        product_flag: Product boolean column the product must have set (e.g. 'type_sales')
        allow_tasks: lines may reference a task instead of a product (invoices)
        project_id: when set, referenced tasks must belong to this project

    Returns:
        (line rows, DocumentTotals)
    """
    if not isinstance(raw_lines, list) or not raw_lines:
        raise LineItemError([{'field': 'lines', 'message': 'At least one line item is required'}])

    errors = FieldErrors()
    rows = []
    amounts = []
    for index, raw in enumerate(raw_lines):
        prefix = f'lines[{index}]'
        if not isinstance(raw, dict):
            errors.add(prefix, 'Line item must be an object')
            continue

        product, task = _resolve_source(raw, prefix, errors, product_flag, allow_tasks, project_id)

        default_quantity = task.hours_logged if task is not None and product is None else None
        default_price = task.hourly_rate if task is not None and product is None else None
        default_unit = 'hours' if task is not None and product is None else None

        # Rounded to the column scale before the > 0 checks
        quantity = errors.check(f'{prefix}.quantity', parse_decimal(
            raw.get('quantity', default_quantity), 'Quantity', required=True,
            minimum=ZERO, exclusive_minimum=True, places=TWO_PLACES))
        unit_price = errors.check(f'{prefix}.unit_price', parse_decimal(
            raw.get('unit_price', default_price), 'Unit price', required=True,
            minimum=ZERO, exclusive_minimum=True, places=TWO_PLACES))
        tax_percent = errors.check(f'{prefix}.tax_percent', parse_decimal(
            raw.get('tax_percent', 0), 'Tax percent', minimum=ZERO, places=TWO_PLACES))
        unit = errors.check(f'{prefix}.unit', validate_text(
            raw.get('unit', default_unit), 'Unit', max_length=50))

        if errors:
            continue

        tax_percent = tax_percent if tax_percent is not None else ZERO
        amount = compute_line(quantity, unit_price, tax_percent)
        amounts.append(amount)

        values = dict(
            quantity=quantity,
            unit=unit,
            unit_price=unit_price,
            tax_percent=tax_percent,
            line_total=amount.line_total,
            tax_amount=amount.tax_amount,
            line_grand_total=amount.line_grand_total,
        )
        if product is not None:
            values['product_id'] = product.id
        if allow_tasks:
            values['task_id'] = task.id if task is not None else None
        rows.append(line_model(**values))

    if errors:
        raise LineItemError(errors.errors)

    return rows, compute_totals(amounts)
