#!/usr/bin/env python3
"""
equaio Feature Demonstration

Walks through the bundled problems the way a learner would.
"""

from equaio import (
    Catalog, SelectionSet, BlockContext,
    build, format_block, format_expression, group_history, convert_mathvar,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def step(ws, addresses, label, index=0):
    """Select addresses, apply the action with the given label, print the new line."""
    selection = SelectionSet(addresses)
    with ws.edit(index) as seq:
        actions = seq.get_possible_actions(selection)
        labels = [str(action) for action, _ in actions]
        seq.try_apply_action_by_index(selection, labels.index(label))
        top = seq.top.expression
    selection.clear()
    print(f"  {label:<32} {format_expression(top)}")


def demo_actions(catalog):
    """List what the rules offer for a selection."""
    section("Possible Actions")

    ws = catalog.build_worksheet("algebra0")
    selection = SelectionSet([(0, 1)])
    seq = ws.get(0)
    print(f"  {format_expression(seq.top.expression)}, selecting the 3")
    for i, (action, result) in enumerate(seq.get_possible_actions(selection)):
        print(f"  {i}: {action}  ->  {format_expression(result)}")


def demo_step_by_step(catalog):
    """Solve 2x - 1 = 3 without automatic steps."""
    section("Step by Step")

    ws = catalog.build_worksheet("algebra1")
    print(f"  {'Initial':<32} {format_expression(ws.get(0).top.expression)}")
    step(ws, [(0, 1)], "Add 1 to both sides")
    step(ws, [(0,)], "Cancel subtraction")
    step(ws, [(1,)], "Evaluate 3 + 1 = 4")
    step(ws, [(0, 0)], "Divide both sides by 2")
    step(ws, [(0,)], "Cancel common factor")
    step(ws, [(1,)], "Evaluate 4 / 2 = 2")


def demo_automatic_steps(catalog):
    """Identities are applied automatically after each manual step."""
    section("Automatic Steps")

    ws = catalog.build_worksheet("algebra_simplify0")
    step(ws, [(0, 1)], "Subtract 3 from both sides")
    step(ws, [(1,)], "Evaluate 5 + (-3) = 2")

    history = ws.get(0).history
    print("\n  Full history:")
    for i, line in enumerate(history):
        mark = " (auto)" if line.is_auto_generated else ""
        print(f"  [{i}] {format_expression(line.expression):<16} {line.action}{mark}")

    print("\n  Grouped:")
    for group in group_history(history):
        print(f"  [{group.anchor_index}] {format_expression(group.last.expression):<16} "
              f"{group.head.action} ({len(group)} lines)")


def demo_rewind(catalog):
    """reset_to discards the lines after an index."""
    section("Rewind")

    ws = catalog.build_worksheet("algebra0")
    step(ws, [(0, 1)], "Subtract 3 from both sides")
    with ws.edit(0) as seq:
        seq.reset_to(0)
    print(f"  after reset_to(0): {format_expression(ws.get(0).top.expression)}"
          f" ({len(ws.get(0))} line)")


def demo_logic(catalog):
    """The same machinery over a propositional ruleset."""
    section("Logic")

    ws = catalog.build_worksheet("logic0")
    print(f"  {'Initial':<32} {format_expression(ws.get(0).top.expression)}")
    step(ws, [()], "Factoring Out")
    step(ws, [(0,)], "Contradiction")
    step(ws, [()], "Identity")


def demo_blocks():
    """Presentation blocks keep the address of every symbol."""
    section("Presentation")

    expr = ["=", ["+", "x", ["-", 3]], ["/", ["+", "y", 1], 2]]
    block = build(expr)
    print(f"  {format_block(block)}")
    for symbol in block.symbols():
        print(f"    {symbol.symbol!r:>6} @ {symbol.address} {' '.join(symbol.tags)}")

    print(f"\n  2 * x with * concealed: {format_block(build(['*', 2, 'x'], BlockContext(conceal_ops={'*'})))}")
    print(f"  italic variables: {convert_mathvar('x - y = 1', ['x', 'y'])}")


def main():
    catalog = Catalog.load()
    demo_actions(catalog)
    demo_step_by_step(catalog)
    demo_automatic_steps(catalog)
    demo_rewind(catalog)
    demo_logic(catalog)
    demo_blocks()
    print()


if __name__ == "__main__":
    main()
