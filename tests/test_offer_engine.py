import time

import pytest

from offers.engine import (
    CartLine,
    OfferConfigError,
    OfferRule,
    applicable_offers,
    calculate_bundle_price,
    compose_bundle,
    compute_discount,
    optimize_offers,
    parse_config,
)

BURGERS, DRINKS = 10, 20


def line(item, price, qty=1, category=None, size=None, options=0, name=None, bundle=None):
    return CartLine(
        menu_item_id=item,
        quantity=qty,
        unit_price=price,
        category_id=category,
        size_id=size,
        options_price=options,
        name=name or f"Item {item}",
        bundle_id=bundle,
    )


def rule(offer_id, offer_type, config, **kwargs):
    return OfferRule(
        offer_id=offer_id,
        name=f"Offer {offer_id}",
        offer_type=offer_type,
        config=parse_config(offer_type, config),
        **kwargs,
    )


def menu_bundle(offer_id=1, fixed_price=1200, items=("1", "2", "3"), **kwargs):
    return rule(
        offer_id, "bundle", {"fixed_price": fixed_price},
        bundle_items=tuple((i, 1) for i in items), **kwargs,
    )


def threshold(offer_id, min_amount, discount_type, value):
    return rule(offer_id, "threshold_discount", {
        "min_amount": min_amount, "discount_type": discount_type, "discount_value": value,
    })


def promo(offer_id, code, discount_type, value, **extra):
    config = {"code": code, "discount_type": discount_type, "discount_value": value}
    config.update(extra)
    return rule(offer_id, "promo_code", config)


def menu_cart(times=1):
    return [
        line(1, 1000, qty=times, name="Burger"),
        line(2, 400, qty=times, name="Frites"),
        line(3, 300, qty=times, name="Boisson"),
    ]


# ---------------------------------------------------------------------------
# Config and arithmetic
# ---------------------------------------------------------------------------

def test_compute_discount_rounds_percentages_down_and_caps():
    assert compute_discount(999, "percentage", 10) == 99
    assert compute_discount(10000, "percentage", 10, max_discount=500) == 500
    assert compute_discount(1500, "fixed", 2000) == 1500
    assert compute_discount(0, "fixed", 500) == 0


def test_parse_config_rejects_bad_configs():
    with pytest.raises(OfferConfigError):
        parse_config("mystery", {})
    with pytest.raises(OfferConfigError):
        parse_config("bundle", {"type": "specific_items"})
    with pytest.raises(OfferConfigError):
        parse_config("bundle", {"type": "category_choice", "fixed_price": 1000})
    with pytest.raises(OfferConfigError):
        parse_config("promo_code", {"code": "X", "discount_type": "percentage", "discount_value": 150})


def test_parse_config_accepts_legacy_category_id():
    config = parse_config("bundle", {
        "type": "category_choice",
        "fixed_price": 1000,
        "bundle_categories": [{"category_id": 5, "category_ids": [6]}],
    })
    assert config.bundle_categories[0].category_ids == ("6", "5")


def test_promo_code_is_matched_case_insensitively():
    config = parse_config("promo_code", {"code": " Bienvenue ", "discount_type": "fixed", "discount_value": 100})
    assert config.code == "BIENVENUE"
    assert config.matches("bienvenue")
    assert not config.matches("")


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------

def test_specific_bundle_applies_once_per_complete_set():
    result = optimize_offers(menu_cart(times=2), [menu_bundle()])

    assert result.total_discount == 1000
    applied = result.applied_offers[0]
    assert applied.times_applied == 2
    assert applied.discount_amount == 1000
    assert [c.to_dict() for c in applied.items_consumed] == [
        {"menu_item_id": 1, "quantity": 2},
        {"menu_item_id": 2, "quantity": 2},
        {"menu_item_id": 3, "quantity": 2},
    ]


def test_bundle_without_saving_is_not_applied():
    result = optimize_offers(menu_cart(), [menu_bundle(fixed_price=2000)])
    assert result.applied_offers == []
    assert result.total_discount == 0


def test_bundle_options_are_charged_unless_free():
    cart = [line(1, 1200, options=200), line(2, 400), line(3, 300)]
    charged = optimize_offers(cart, [menu_bundle(fixed_price=1200)])
    assert charged.total_discount == 1900 - 1200 - 200

    free = rule(1, "bundle", {"fixed_price": 1200, "free_options": True},
                bundle_items=(("1", 1), ("2", 1), ("3", 1)))
    assert optimize_offers(cart, [free]).total_discount == 1900 - 1200


def category_bundle_config(**first_slot):
    slot = {"category_ids": [BURGERS], "quantity": 1, "supplements": {"2": 150}}
    slot.update(first_slot)
    return {
        "type": "category_choice",
        "fixed_price": 1000,
        "bundle_categories": [slot, {"category_ids": [DRINKS], "quantity": 1}],
    }


def test_category_bundle_picks_best_net_saving_after_supplement():
    cart = [
        line(1, 900, category=BURGERS),
        line(2, 1200, category=BURGERS),
        line(3, 300, category=DRINKS),
    ]
    result = optimize_offers(cart, [rule(1, "bundle", category_bundle_config())])

    # Burger 2 saves 1200 - 150 against burger 1's 900
    assert result.total_discount == 1200 + 300 - (1000 + 150)
    assert {c.menu_item_id for c in result.applied_offers[0].items_consumed} == {2, 3}


def test_category_bundle_skips_excluded_items_and_sizes():
    cart = [
        line(1, 900, category=BURGERS),
        line(2, 1200, category=BURGERS),
        line(3, 300, category=DRINKS),
    ]
    no_item_2 = rule(1, "bundle", category_bundle_config(excluded_items=["2"]))
    assert optimize_offers(cart, [no_item_2]).total_discount == 900 + 300 - 1000

    sized = [line(1, 900, category=BURGERS, size=7), line(3, 300, category=DRINKS)]
    no_size_7 = rule(1, "bundle", category_bundle_config(excluded_sizes={"1": ["7"]}))
    assert optimize_offers(sized, [no_size_7]).applied_offers == []


def test_category_bundle_fills_most_constrained_slot_first():
    config = {
        "type": "category_choice",
        "fixed_price": 1000,
        "bundle_categories": [
            {"category_ids": [BURGERS, DRINKS], "quantity": 1},
            {"category_ids": [DRINKS], "quantity": 1},
        ],
    }
    cart = [line(1, 500, category=BURGERS), line(2, 800, category=DRINKS)]
    result = optimize_offers(cart, [rule(1, "bundle", config)])
    assert result.total_discount == 300


def test_supplement_prefers_size_specific_key():
    config = category_bundle_config(supplements={"2": 150, "2:9": 250})
    cart = [line(2, 1400, category=BURGERS, size=9), line(3, 300, category=DRINKS)]
    result = optimize_offers(cart, [rule(1, "bundle", config)])
    assert result.total_discount == 1400 + 300 - (1000 + 250)


# ---------------------------------------------------------------------------
# Buy X get Y
# ---------------------------------------------------------------------------

def test_buy_two_get_one_free_repeats():
    offer = rule(1, "buy_x_get_y", {"trigger_quantity": 2, "reward_quantity": 1}, trigger_items=frozenset({"1"}))

    once = optimize_offers([line(1, 500, qty=3, name="Crêpe")], [offer])
    assert once.total_discount == 500
    assert once.applied_offers[0].free_item_name == "Crêpe"

    twice = optimize_offers([line(1, 500, qty=6)], [offer])
    assert twice.applied_offers[0].times_applied == 2
    assert twice.total_discount == 1000


def test_buy_x_get_y_takes_most_expensive_triggers_then_rewards():
    offer = rule(1, "buy_x_get_y", {
        "type": "category_choice",
        "trigger_quantity": 2,
        "reward_quantity": 1,
        "trigger_category_ids": [BURGERS],
    })
    cart = [
        line(1, 400, category=BURGERS),
        line(2, 800, category=BURGERS),
        line(3, 600, category=BURGERS),
    ]
    result = optimize_offers(cart, [offer])
    assert result.total_discount == 400


def test_buy_x_get_y_discount_reward_is_capped_at_unit_price():
    offer = rule(1, "buy_x_get_y", {
        "trigger_quantity": 1, "reward_quantity": 1,
        "reward_type": "discount", "reward_value": 200,
    }, trigger_items=frozenset({"1"}), reward_items=frozenset({"2"}))
    result = optimize_offers([line(1, 900), line(2, 150)], [offer])
    assert result.total_discount == 150


def test_max_applications_limits_repeats():
    offer = rule(1, "buy_x_get_y", {"trigger_quantity": 2, "reward_quantity": 1},
                 trigger_items=frozenset({"1"}), max_applications=1)
    result = optimize_offers([line(1, 500, qty=6)], [offer])
    assert result.applied_offers[0].times_applied == 1
    assert result.total_discount == 500


def test_customer_built_bundle_lines_are_never_consumed():
    offer = rule(1, "buy_x_get_y", {"trigger_quantity": 1, "reward_quantity": 1}, trigger_items=frozenset({"1"}))
    result = optimize_offers([line(1, 500, qty=2, bundle=9)], [offer])
    assert result.applied_offers == []


# ---------------------------------------------------------------------------
# Combining offers
# ---------------------------------------------------------------------------

def test_optimizer_beats_greedy_when_the_best_bundle_blocks_two_others():
    cart = [line(1, 1000), line(2, 1000), line(3, 500), line(4, 500)]
    rules = [
        menu_bundle(offer_id=1, fixed_price=1400, items=("1", "2")),
        menu_bundle(offer_id=2, fixed_price=1000, items=("1", "3")),
        menu_bundle(offer_id=3, fixed_price=1000, items=("2", "4")),
    ]

    result = optimize_offers(cart, rules)
    assert [o.offer_id for o in result.applied_offers] == [2, 3]
    assert result.total_discount == 1000

    greedy = optimize_offers(cart, rules, max_permutation=2)
    assert [o.offer_id for o in greedy.applied_offers] == [1]
    assert greedy.total_discount == 600


def test_equal_discounts_follow_display_order():
    cart = [line(1, 1000), line(2, 400), line(3, 400)]

    def bundles(first_order, second_order):
        return [
            menu_bundle(offer_id=1, fixed_price=1100, items=("1", "2"), display_order=first_order),
            menu_bundle(offer_id=2, fixed_price=1100, items=("1", "3"), display_order=second_order),
        ]

    assert [o.offer_id for o in optimize_offers(cart, bundles(1, 0)).applied_offers] == [2]
    assert [o.offer_id for o in optimize_offers(cart, bundles(0, 1)).applied_offers] == [1]


def test_optimizer_stays_fast_on_large_carts():
    rules = [
        rule(i, "buy_x_get_y", {"trigger_quantity": 1, "reward_quantity": 1}, trigger_items=frozenset({str(i)}))
        for i in range(1, 7)
    ]
    cart = [line(i, 100 * i, qty=150) for i in range(1, 7)]

    started = time.monotonic()
    result = optimize_offers(cart, rules)

    assert time.monotonic() - started < 5
    assert result.total_discount == sum(75 * 100 * i for i in range(1, 7))
    assert all(o.times_applied == 75 for o in result.applied_offers)


def test_only_the_best_threshold_applies():
    cart = [line(1, 3000)]
    result = optimize_offers(cart, [threshold(1, 2000, "percentage", 10), threshold(2, 2000, "fixed", 500)])
    assert [o.offer_id for o in result.applied_offers] == [2]
    assert result.total_discount == 500

    assert optimize_offers([line(1, 1500)], [threshold(1, 2000, "percentage", 10)]).total_discount == 0


def test_threshold_applies_on_amount_left_after_item_offers():
    cart = menu_cart() + [line(4, 1000)]
    result = optimize_offers(cart, [menu_bundle(), threshold(5, 2000, "percentage", 10)])
    assert result.offers_discount == 500 + 220
    assert result.total_discount == 720


def test_non_stackable_offers_keep_the_larger_side():
    cart = menu_cart() + [line(4, 1000)]

    items_win = optimize_offers(cart, [menu_bundle(), threshold(5, 2000, "percentage", 10)], offers_stackable=False)
    assert [o.offer_id for o in items_win.applied_offers] == [1]
    assert items_win.total_discount == 500

    threshold_wins = optimize_offers(cart, [menu_bundle(), threshold(5, 2000, "fixed", 800)], offers_stackable=False)
    assert [o.offer_id for o in threshold_wins.applied_offers] == [5]
    assert threshold_wins.total_discount == 800


def test_non_stackable_tie_goes_to_item_offers():
    cart = menu_cart() + [line(4, 1000)]

    result = optimize_offers(cart, [menu_bundle(), threshold(5, 2000, "fixed", 500)], offers_stackable=False)

    assert [o.offer_id for o in result.applied_offers] == [1]
    assert result.total_discount == 500


def test_promo_code_applies_after_other_discounts():
    cart = [line(1, 3000)]
    rules = [threshold(1, 2000, "fixed", 500), promo(2, "WELCOME", "percentage", 10)]

    result = optimize_offers(cart, rules, promo_code="welcome")
    assert result.offers_discount == 500
    assert result.promo_discount == 250
    assert result.total_discount == 750

    assert optimize_offers(cart, rules, promo_code="OTHER").promo_discount == 0


def test_non_stackable_promo_code_is_skipped_when_offers_apply():
    rules = [threshold(1, 2000, "fixed", 500), promo(2, "WELCOME", "percentage", 10)]

    skipped = optimize_offers([line(1, 3000)], rules, promo_code="WELCOME", promo_codes_stackable=False)
    assert skipped.promo_discount == 0
    assert skipped.total_discount == 500

    alone = optimize_offers([line(1, 1000)], rules, promo_code="WELCOME", promo_codes_stackable=False)
    assert alone.promo_discount == 100


def test_promo_code_minimum_and_cap():
    rules = [promo(1, "HALF", "percentage", 50, min_order_amount=1500, max_discount=300)]
    assert optimize_offers([line(1, 1000)], rules, promo_code="HALF").total_discount == 0
    assert optimize_offers([line(1, 2000)], rules, promo_code="HALF").total_discount == 300


def test_total_discount_never_exceeds_subtotal():
    rules = [threshold(1, 0, "fixed", 5000), promo(2, "MORE", "fixed", 500)]
    result = optimize_offers([line(1, 1000)], rules, promo_code="MORE")
    assert result.total_discount == 1000


def test_bundle_lines_count_towards_thresholds():
    result = optimize_offers([line(1, 2500, bundle=9)], [threshold(1, 2000, "percentage", 10)])
    assert result.total_discount == 250


# ---------------------------------------------------------------------------
# Previews and customer-built bundles
# ---------------------------------------------------------------------------

def test_applicable_offers_report_progress():
    bogo = rule(1, "buy_x_get_y", {"trigger_quantity": 2, "reward_quantity": 1}, trigger_items=frozenset({"1"}))
    rules = [bogo, threshold(2, 2000, "percentage", 10), promo(3, "SECRET", "fixed", 100)]

    hints = {h.offer_id: h for h in applicable_offers([line(1, 750, qty=2)], rules)}

    assert set(hints) == {1, 2}
    assert (hints[1].progress_current, hints[1].progress_required) == (2, 3)
    assert not hints[1].is_applicable
    assert (hints[2].progress_current, hints[2].progress_required) == (1500, 2000)
    assert hints[2].calculated_discount == 0

    with_code = applicable_offers([line(1, 750, qty=3)], rules, promo_code="secret")
    by_id = {h.offer_id: h for h in with_code}
    assert by_id[1].is_applicable and by_id[1].calculated_discount == 750
    assert by_id[2].calculated_discount == 225
    assert by_id[3].calculated_discount == 100


def test_calculate_bundle_price():
    price = calculate_bundle_price(1000, supplements=[150, 0], options=[100, 50], quantity=2)
    assert (price.unit_price, price.total_price) == (1300, 2600)
    assert calculate_bundle_price(1000, [150], [100, 50], free_options=True).unit_price == 1150


def test_compose_bundle_specific_items():
    offer = menu_bundle(items=("1", "2"))
    assert compose_bundle(offer, [line(1, 1000), line(2, 400)]) == [0, 0]
    assert compose_bundle(offer, [line(1, 1000)]) is None
    assert compose_bundle(offer, [line(1, 1000), line(2, 400), line(3, 300)]) is None


def test_compose_bundle_category_choice_returns_supplements_per_line():
    offer = rule(1, "bundle", category_bundle_config())
    burger, drink = line(2, 1200, category=BURGERS), line(3, 300, category=DRINKS)

    assert compose_bundle(offer, [burger, drink]) == [150, 0]
    assert compose_bundle(offer, [drink, burger]) == [0, 150]
    assert compose_bundle(offer, [burger]) is None
    assert compose_bundle(offer, [burger, line(4, 300, category=BURGERS)]) is None
