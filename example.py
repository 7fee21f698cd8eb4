"""Example usage of ProtoDiff comparison engine."""

import json
from protodiff import (
    DiffEngine,
    DiffPolicy,
    Message,
    SchemaRegistry,
    Verdict,
    ignoring_field_descriptors,
)

# Sample schema: an invoice with a header, line items and labels
schema = {
    "package": "billing",
    "messages": {
        "Header": {
            "fields": [
                {"name": "trace_id", "number": 1, "type": "string"},
                {"name": "updated_at", "number": 2, "type": "int64"},
            ]
        },
        "LineItem": {
            "fields": [
                {"name": "sku", "number": 1, "type": "string"},
                {"name": "quantity", "number": 2, "type": "int32"},
                {"name": "unit_price", "number": 3, "type": "double"},
            ]
        },
        "Invoice": {
            "fields": [
                {"name": "id", "number": 1, "type": "string"},
                {"name": "total", "number": 2, "type": "double"},
                {"name": "header", "number": 3, "type": "Header"},
                {"name": "line_items", "number": 4, "type": "LineItem", "label": "repeated"},
                {"name": "labels", "number": 5, "type": "map", "key_type": "string", "value_type": "string"},
            ]
        },
    },
}

registry = SchemaRegistry.from_dict(schema)
invoice_type = registry.get("Invoice")

# Message produced by the legacy system
old_invoice = Message.from_dict(invoice_type, {
    "id": "INV-001",
    "total": 100.0,
    "header": {"trace_id": "abc123", "updated_at": 1738492200},
    "line_items": [
        {"sku": "WIDGET-001", "quantity": 5, "unit_price": 10.0},
        {"sku": "GADGET-002", "quantity": 2, "unit_price": 25.5},
    ],
    "labels": {"region": "eu"},
    "$unknown": {99: {"varint": [1]}},
})

# Message produced by the new system
new_invoice = Message.from_dict(invoice_type, {
    "id": "INV-001",
    "total": 100.004,  # Within tolerance
    "header": {"trace_id": "def456", "updated_at": 1738492202},  # Ignored
    "line_items": [
        {"sku": "GADGET-002", "quantity": 2, "unit_price": 25.5},  # Reordered
        {"sku": "WIDGET-001", "quantity": 5, "unit_price": 10.0},
    ],
    "labels": {"region": "eu"},
    "$unknown": {99: {"varint": [1]}},
})


def print_result(result):
    print(f"\nMatch: {result.is_matched()}")

    print("\nFields:")
    for field_diff in result.fields:
        print(f"  - [{field_diff.verdict.value}] {field_diff.name}")

    if result.unknown_fields is not None:
        print("\nUnknown fields:")
        for field_diff in result.unknown_fields:
            print(f"  - [{field_diff.verdict.value}] {field_diff.name}")


def main():
    print("=" * 60)
    print("ProtoDiff Comparison Engine - Example")
    print("=" * 60)

    header = invoice_type.find_field_by_name("header")
    policy = (
        DiffPolicy()
        .ignoring_repeated_field_order()
        .using_double_tolerance(0.01)
    )
    engine = DiffEngine(scope=ignoring_field_descriptors(header), policy=policy)

    result = engine.diff(old_invoice, new_invoice)
    print_result(result)

    print("\n" + "-" * 60)
    print("Full JSON Report:")
    print(json.dumps(result.to_dict(), indent=2))


def example_with_mismatch():
    """Example that demonstrates a mismatch."""
    print("\n" + "=" * 60)
    print("Example with Mismatch")
    print("=" * 60)

    mismatched_new = Message.from_dict(invoice_type, {
        "id": "INV-001",
        "total": 100.0,
        "line_items": [
            {"sku": "WIDGET-001", "quantity": 6, "unit_price": 10.0},  # Quantity changed
        ],
        "labels": {"region": "us"},
    })

    policy = DiffPolicy().ignoring_repeated_field_order()
    result = DiffEngine(policy=policy).diff(old_invoice, mismatched_new)
    print_result(result)

    line_items = result["line_items"]
    print("\nline_items pairs:")
    for verdict in (Verdict.MATCHED, Verdict.MODIFIED, Verdict.REMOVED, Verdict.ADDED):
        for pair in line_items.pairs_with(verdict):
            print(f"  - [{verdict.value}] actual[{pair.actual_index}] vs expected[{pair.expected_index}]")


def example_expected_fields_only():
    """Example comparing only the fields set in the expected message."""
    print("\n" + "=" * 60)
    print("Example with Expected Fields Only")
    print("=" * 60)

    partial = Message.from_dict(invoice_type, {"id": "INV-001", "labels": {"region": "eu"}})
    policy = DiffPolicy().comparing_expected_fields_only()

    result = DiffEngine(policy=policy).diff(old_invoice, partial)
    print_result(result)


if __name__ == "__main__":
    main()
    example_with_mismatch()
    example_with_expected_fields_only()
