"""
Offer application engine.

Pure Python, no ORM: takes cart lines plus the offers that are live for the
pickup time and works out which offers apply, which cart units each
application consumes, and the resulting discounts. The storefront preview and
checkout both call into this module, so a quote and the order it turns into
always agree.

All amounts are integer cents.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

OFFER_BUNDLE = "bundle"
OFFER_BUY_X_GET_Y = "buy_x_get_y"
OFFER_PROMO_CODE = "promo_code"
OFFER_THRESHOLD = "threshold_discount"

OFFER_TYPES = (OFFER_BUNDLE, OFFER_BUY_X_GET_Y, OFFER_PROMO_CODE, OFFER_THRESHOLD)
ITEM_LEVEL_TYPES = (OFFER_BUNDLE, OFFER_BUY_X_GET_Y)

MODE_SPECIFIC = "specific_items"
MODE_CATEGORY = "category_choice"

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"

REWARD_FREE = "free"
REWARD_DISCOUNT = "discount"

DEFAULT_MAX_PERMUTATION = 6


class OfferConfigError(ValueError):
    """Raised when an offer's JSON config does not fit its type."""


# ---------------------------------------------------------------------------
# Config parsing
# ---------------------------------------------------------------------------

def _int(value, name: str, default: int = 0, minimum: int = 0) -> int:
    if value is None or value == "":
        value = default
    try:
        out = int(value)
    except (TypeError, ValueError):
        raise OfferConfigError(f"{name} must be an integer")
    if out < minimum:
        raise OfferConfigError(f"{name} must be at least {minimum}")
    return out


def _ids(values) -> Tuple[str, ...]:
    return tuple(str(v) for v in (values or []) if v not in (None, ""))


def _choice(value, name: str, allowed: Sequence[str], default: Optional[str] = None) -> str:
    value = value or default
    if value not in allowed:
        raise OfferConfigError(f"{name} must be one of: {', '.join(allowed)}")
    return value


@dataclass
class Exclusions:
    items: frozenset = frozenset()
    sizes: Dict[str, frozenset] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, items, sizes) -> "Exclusions":
        return cls(
            items=frozenset(_ids(items)),
            sizes={str(k): frozenset(_ids(v)) for k, v in (sizes or {}).items()},
        )

    def excludes(self, unit: "_Unit") -> bool:
        item = str(unit.menu_item_id)
        if item in self.items:
            return True
        return unit.size_id is not None and str(unit.size_id) in self.sizes.get(item, ())

    def to_dict(self, prefix: str = "") -> dict:
        return {
            f"{prefix}excluded_items": sorted(self.items),
            f"{prefix}excluded_sizes": {k: sorted(v) for k, v in self.sizes.items()},
        }


@dataclass
class BundleCategoryConfig:
    """One slot of a category-choice bundle ("1 burger au choix")."""

    category_ids: Tuple[str, ...]
    quantity: int = 1
    label: str = ""
    exclusions: Exclusions = field(default_factory=Exclusions)
    supplements: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "BundleCategoryConfig":
        category_ids = list(_ids(data.get("category_ids")))
        legacy = data.get("category_id")
        if legacy and str(legacy) not in category_ids:
            category_ids.append(str(legacy))
        if not category_ids:
            raise OfferConfigError("each bundle category needs at least one category")
        supplements = {
            str(key): _int(value, f"supplements[{key}]")
            for key, value in (data.get("supplements") or {}).items()
        }
        return cls(
            category_ids=tuple(category_ids),
            quantity=_int(data.get("quantity"), "quantity", default=1, minimum=1),
            label=str(data.get("label") or ""),
            exclusions=Exclusions.from_dict(data.get("excluded_items"), data.get("excluded_sizes")),
            supplements=supplements,
        )

    def matches(self, unit: "_Unit") -> bool:
        if unit.category_id is None or str(unit.category_id) not in self.category_ids:
            return False
        return not self.exclusions.excludes(unit)

    def supplement_for(self, unit: "_Unit") -> int:
        item = str(unit.menu_item_id)
        if unit.size_id is not None:
            sized = f"{item}:{unit.size_id}"
            if sized in self.supplements:
                return self.supplements[sized]
        return self.supplements.get(item, 0)

    def to_dict(self) -> dict:
        out = {
            "category_ids": list(self.category_ids),
            "quantity": self.quantity,
            "label": self.label,
            "supplements": dict(self.supplements),
        }
        out.update(self.exclusions.to_dict())
        return out


@dataclass
class BundleConfig:
    fixed_price: int
    mode: str = MODE_SPECIFIC
    bundle_categories: List[BundleCategoryConfig] = field(default_factory=list)
    free_options: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "BundleConfig":
        mode = _choice(data.get("type"), "type", (MODE_SPECIFIC, MODE_CATEGORY), MODE_SPECIFIC)
        categories = [BundleCategoryConfig.from_dict(c) for c in (data.get("bundle_categories") or [])]
        if mode == MODE_CATEGORY and not categories:
            raise OfferConfigError("a category_choice bundle needs bundle_categories")
        if "fixed_price" not in data:
            raise OfferConfigError("fixed_price is required")
        return cls(
            fixed_price=_int(data.get("fixed_price"), "fixed_price"),
            mode=mode,
            bundle_categories=categories,
            free_options=bool(data.get("free_options", False)),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.mode,
            "fixed_price": self.fixed_price,
            "bundle_categories": [c.to_dict() for c in self.bundle_categories],
            "free_options": self.free_options,
        }


@dataclass
class BuyXGetYConfig:
    trigger_quantity: int
    reward_quantity: int
    reward_type: str = REWARD_FREE
    reward_value: int = 0
    mode: str = MODE_SPECIFIC
    trigger_category_ids: Tuple[str, ...] = ()
    trigger_exclusions: Exclusions = field(default_factory=Exclusions)
    reward_category_ids: Tuple[str, ...] = ()
    reward_exclusions: Exclusions = field(default_factory=Exclusions)

    @classmethod
    def from_dict(cls, data: dict) -> "BuyXGetYConfig":
        mode = _choice(data.get("type"), "type", (MODE_SPECIFIC, MODE_CATEGORY), MODE_SPECIFIC)
        reward_type = _choice(data.get("reward_type"), "reward_type", (REWARD_FREE, REWARD_DISCOUNT), REWARD_FREE)
        reward_value = _int(data.get("reward_value"), "reward_value")
        if reward_type == REWARD_DISCOUNT and reward_value <= 0:
            raise OfferConfigError("reward_value is required for a discount reward")
        trigger_categories = _ids(data.get("trigger_category_ids"))
        if mode == MODE_CATEGORY and not trigger_categories:
            raise OfferConfigError("a category_choice offer needs trigger_category_ids")
        return cls(
            trigger_quantity=_int(data.get("trigger_quantity"), "trigger_quantity", default=1, minimum=1),
            reward_quantity=_int(data.get("reward_quantity"), "reward_quantity", default=1, minimum=1),
            reward_type=reward_type,
            reward_value=reward_value,
            mode=mode,
            trigger_category_ids=trigger_categories,
            trigger_exclusions=Exclusions.from_dict(
                data.get("trigger_excluded_items"), data.get("trigger_excluded_sizes")
            ),
            reward_category_ids=_ids(data.get("reward_category_ids")),
            reward_exclusions=Exclusions.from_dict(
                data.get("reward_excluded_items"), data.get("reward_excluded_sizes")
            ),
        )

    def to_dict(self) -> dict:
        out = {
            "type": self.mode,
            "trigger_quantity": self.trigger_quantity,
            "reward_quantity": self.reward_quantity,
            "reward_type": self.reward_type,
            "reward_value": self.reward_value,
            "trigger_category_ids": list(self.trigger_category_ids),
            "reward_category_ids": list(self.reward_category_ids),
        }
        out.update(self.trigger_exclusions.to_dict("trigger_"))
        out.update(self.reward_exclusions.to_dict("reward_"))
        return out


@dataclass
class PromoCodeConfig:
    code: str
    discount_type: str
    discount_value: int
    min_order_amount: int = 0
    max_discount: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "PromoCodeConfig":
        code = str(data.get("code") or "").strip()
        if not code:
            raise OfferConfigError("code is required")
        discount_type = _choice(data.get("discount_type"), "discount_type", (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED))
        value = _int(data.get("discount_value"), "discount_value", minimum=1)
        if discount_type == DISCOUNT_PERCENTAGE and value > 100:
            raise OfferConfigError("a percentage cannot exceed 100")
        max_discount = data.get("max_discount")
        return cls(
            code=code.upper(),
            discount_type=discount_type,
            discount_value=value,
            min_order_amount=_int(data.get("min_order_amount"), "min_order_amount"),
            max_discount=_int(max_discount, "max_discount") if max_discount not in (None, "") else None,
        )

    def matches(self, code: Optional[str]) -> bool:
        return bool(code) and code.strip().upper() == self.code

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "min_order_amount": self.min_order_amount,
            "max_discount": self.max_discount,
        }


@dataclass
class ThresholdDiscountConfig:
    min_amount: int
    discount_type: str
    discount_value: int

    @classmethod
    def from_dict(cls, data: dict) -> "ThresholdDiscountConfig":
        discount_type = _choice(data.get("discount_type"), "discount_type", (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED))
        value = _int(data.get("discount_value"), "discount_value", minimum=1)
        if discount_type == DISCOUNT_PERCENTAGE and value > 100:
            raise OfferConfigError("a percentage cannot exceed 100")
        return cls(
            min_amount=_int(data.get("min_amount"), "min_amount"),
            discount_type=discount_type,
            discount_value=value,
        )

    def to_dict(self) -> dict:
        return {
            "min_amount": self.min_amount,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
        }


CONFIG_CLASSES = {
    OFFER_BUNDLE: BundleConfig,
    OFFER_BUY_X_GET_Y: BuyXGetYConfig,
    OFFER_PROMO_CODE: PromoCodeConfig,
    OFFER_THRESHOLD: ThresholdDiscountConfig,
}


def parse_config(offer_type: str, data: Optional[dict]):
    """Parse and validate the JSON config of an offer of ``offer_type``."""
    try:
        klass = CONFIG_CLASSES[offer_type]
    except KeyError:
        raise OfferConfigError(f"Unknown offer type: {offer_type}")
    if not isinstance(data, dict):
        raise OfferConfigError("config must be an object")
    return klass.from_dict(data)


def compute_discount(base: int, discount_type: str, value: int, max_discount: Optional[int] = None) -> int:
    """Percentage discounts round down; fixed discounts never exceed ``base``."""
    if base <= 0:
        return 0
    if discount_type == DISCOUNT_PERCENTAGE:
        amount = base * value // 100
        if max_discount:
            amount = min(amount, max_discount)
    else:
        amount = value
    return max(0, min(amount, base))


# ---------------------------------------------------------------------------
# Cart and rule inputs
# ---------------------------------------------------------------------------

@dataclass
class CartLine:
    """One cart line as the engine sees it.

    ``unit_price`` already includes option modifiers (``options_price`` is the
    non-size part of them). Lines carrying a ``bundle_id`` were put together by
    the customer as a bundle and are never consumed by automatic offers.
    """

    menu_item_id: int
    quantity: int
    unit_price: int
    category_id: Optional[int] = None
    size_id: Optional[int] = None
    options_price: int = 0
    name: str = ""
    bundle_id: Optional[int] = None

    @property
    def base_price(self) -> int:
        return self.unit_price - self.options_price

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity


@dataclass
class OfferRule:
    offer_id: int
    name: str
    offer_type: str
    config: object
    trigger_items: frozenset = frozenset()
    reward_items: frozenset = frozenset()
    bundle_items: Tuple[Tuple[str, int], ...] = ()
    max_applications: Optional[int] = None
    display_order: int = 0
    description: str = ""

    @property
    def is_item_level(self) -> bool:
        return self.offer_type in ITEM_LEVEL_TYPES

    def can_apply(self, times: int) -> bool:
        return self.max_applications is None or times < self.max_applications


@dataclass(frozen=True)
class _Unit:
    index: int
    line: int
    menu_item_id: int
    category_id: Optional[int]
    size_id: Optional[int]
    unit_price: int
    options_price: int
    name: str


@dataclass
class _Application:
    units: Tuple[_Unit, ...]
    discount: int
    free_item_name: Optional[str] = None


def expand_units(lines: Iterable[CartLine], include_bundles: bool = False) -> List[_Unit]:
    """One unit per quantity of each non-bundle line, most expensive first."""
    units = []
    for position, line in enumerate(lines):
        if line.bundle_id is not None and not include_bundles:
            continue
        for _ in range(max(0, int(line.quantity))):
            units.append(_Unit(
                index=len(units),
                line=position,
                menu_item_id=line.menu_item_id,
                category_id=line.category_id,
                size_id=line.size_id,
                unit_price=line.unit_price,
                options_price=line.options_price,
                name=line.name,
            ))
    units.sort(key=lambda u: (-u.unit_price, u.index))
    return units


# ---------------------------------------------------------------------------
# Single applications
# ---------------------------------------------------------------------------

def _bundle_specific(rule: OfferRule, available: Sequence[_Unit]) -> Optional[_Application]:
    cfg: BundleConfig = rule.config
    if not rule.bundle_items:
        return None
    taken: Dict[int, _Unit] = {}
    for item_id, quantity in rule.bundle_items:
        matches = [u for u in available if str(u.menu_item_id) == item_id and u.index not in taken]
        if len(matches) < quantity:
            return None
        for unit in matches[:quantity]:
            taken[unit.index] = unit
    chosen = tuple(taken.values())
    original = sum(u.unit_price for u in chosen)
    price = cfg.fixed_price + (0 if cfg.free_options else sum(u.options_price for u in chosen))
    return _Application(units=chosen, discount=original - price)


def _assign_slots(cfg: BundleConfig, available: Sequence[_Unit]) -> Optional[List[Tuple[_Unit, int]]]:
    """Fill each category slot; returns (unit, supplement) pairs or None if a slot stays short."""
    slots = cfg.bundle_categories
    candidates = [[u for u in available if slot.matches(u)] for slot in slots]
    # Most constrained slot first, so a flexible slot does not eat a unit another slot needs
    order = sorted(range(len(slots)), key=lambda i: (len(candidates[i]), i))

    taken: Dict[int, Tuple[_Unit, int]] = {}
    for i in order:
        slot = slots[i]

        def net(unit: _Unit, slot=slot) -> int:
            counted = 0 if cfg.free_options else unit.options_price
            return unit.unit_price - slot.supplement_for(unit) - counted

        ranked = sorted(
            (u for u in candidates[i] if u.index not in taken),
            key=lambda u: (-net(u), -u.unit_price, u.index),
        )
        picked = ranked[:slot.quantity]
        if len(picked) < slot.quantity:
            return None
        for unit in picked:
            taken[unit.index] = (unit, slot.supplement_for(unit))
    return list(taken.values())


def _bundle_category(rule: OfferRule, available: Sequence[_Unit]) -> Optional[_Application]:
    cfg: BundleConfig = rule.config
    assigned = _assign_slots(cfg, available)
    if assigned is None:
        return None
    chosen = tuple(unit for unit, _ in assigned)
    original = sum(u.unit_price for u in chosen)
    price = calculate_bundle_price(
        cfg.fixed_price,
        supplements=[s for _, s in assigned],
        options=[u.options_price for u in chosen],
        free_options=cfg.free_options,
    ).unit_price
    return _Application(units=chosen, discount=original - price)


def _bogo_predicates(rule: OfferRule) -> Tuple[Callable[[_Unit], bool], Callable[[_Unit], bool]]:
    cfg: BuyXGetYConfig = rule.config
    if cfg.mode == MODE_CATEGORY:
        def in_categories(unit: _Unit, ids: Tuple[str, ...]) -> bool:
            return unit.category_id is not None and str(unit.category_id) in ids

        reward_ids = cfg.reward_category_ids or cfg.trigger_category_ids

        def is_trigger(unit: _Unit) -> bool:
            return in_categories(unit, cfg.trigger_category_ids) and not cfg.trigger_exclusions.excludes(unit)

        def is_reward(unit: _Unit) -> bool:
            return in_categories(unit, reward_ids) and not cfg.reward_exclusions.excludes(unit)
    else:
        reward_items = rule.reward_items or rule.trigger_items

        def is_trigger(unit: _Unit) -> bool:
            return str(unit.menu_item_id) in rule.trigger_items

        def is_reward(unit: _Unit) -> bool:
            return str(unit.menu_item_id) in reward_items
    return is_trigger, is_reward


def _buy_x_get_y(rule: OfferRule, available: Sequence[_Unit]) -> Optional[_Application]:
    cfg: BuyXGetYConfig = rule.config
    is_trigger, is_reward = _bogo_predicates(rule)
    eligible = [u for u in available if is_trigger(u)]
    if len(eligible) < cfg.trigger_quantity:
        return None

    # Second pass keeps reward-eligible units out of the triggers when possible
    for ordering in (eligible, sorted(eligible, key=lambda u: (is_reward(u), -u.unit_price, u.index))):
        triggers = ordering[:cfg.trigger_quantity]
        used = {u.index for u in triggers}
        rewards = [u for u in available if u.index not in used and is_reward(u)][:cfg.reward_quantity]
        if len(rewards) == cfg.reward_quantity:
            break
    else:
        return None

    if cfg.reward_type == REWARD_FREE:
        discount = sum(u.unit_price for u in rewards)
    else:
        discount = sum(min(cfg.reward_value, u.unit_price) for u in rewards)
    return _Application(
        units=tuple(triggers) + tuple(rewards),
        discount=discount,
        free_item_name=rewards[0].name or None,
    )


def apply_once(rule: OfferRule, available: Sequence[_Unit]) -> Optional[_Application]:
    """Best single application of an item-level rule, or None if it cannot apply."""
    if rule.offer_type == OFFER_BUNDLE:
        if rule.config.mode == MODE_CATEGORY:
            app = _bundle_category(rule, available)
        else:
            app = _bundle_specific(rule, available)
    elif rule.offer_type == OFFER_BUY_X_GET_Y:
        app = _buy_x_get_y(rule, available)
    else:
        return None
    if app is None or app.discount <= 0:
        return None
    return app


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class ConsumedItem:
    menu_item_id: int
    quantity: int

    def to_dict(self) -> dict:
        return {"menu_item_id": self.menu_item_id, "quantity": self.quantity}


@dataclass
class AppliedOffer:
    offer_id: int
    offer_name: str
    offer_type: str
    times_applied: int
    discount_amount: int
    items_consumed: List[ConsumedItem] = field(default_factory=list)
    free_item_name: Optional[str] = None

    @property
    def discount_per_application(self) -> int:
        return self.discount_amount // self.times_applied if self.times_applied else 0

    def to_dict(self) -> dict:
        return {
            "offer_id": self.offer_id,
            "offer_name": self.offer_name,
            "offer_type": self.offer_type,
            "times_applied": self.times_applied,
            "discount_amount": self.discount_amount,
            "items_consumed": [c.to_dict() for c in self.items_consumed],
            "free_item_name": self.free_item_name,
        }


@dataclass
class OptimizedOffers:
    applied_offers: List[AppliedOffer] = field(default_factory=list)
    total_discount: int = 0

    @property
    def promo_discount(self) -> int:
        return sum(o.discount_amount for o in self.applied_offers if o.offer_type == OFFER_PROMO_CODE)

    @property
    def offers_discount(self) -> int:
        return self.total_discount - self.promo_discount

    def to_dict(self) -> dict:
        return {
            "applied_offers": [o.to_dict() for o in self.applied_offers],
            "total_discount": self.total_discount,
        }


@dataclass
class ApplicableOffer:
    offer_id: int
    offer_name: str
    offer_type: str
    calculated_discount: int
    is_applicable: bool
    progress_current: int
    progress_required: int
    free_item_name: Optional[str] = None
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "offer_id": self.offer_id,
            "offer_name": self.offer_name,
            "offer_type": self.offer_type,
            "calculated_discount": self.calculated_discount,
            "is_applicable": self.is_applicable,
            "progress_current": self.progress_current,
            "progress_required": self.progress_required,
            "free_item_name": self.free_item_name,
            "description": self.description,
        }


def _summarize(rule: OfferRule, apps: Sequence[_Application]) -> AppliedOffer:
    consumed: Dict[int, int] = {}
    for app in apps:
        for unit in sorted(app.units, key=lambda u: u.index):
            consumed[unit.menu_item_id] = consumed.get(unit.menu_item_id, 0) + 1
    free_name = next((a.free_item_name for a in apps if a.free_item_name), None)
    return AppliedOffer(
        offer_id=rule.offer_id,
        offer_name=rule.name,
        offer_type=rule.offer_type,
        times_applied=len(apps),
        discount_amount=sum(a.discount for a in apps),
        items_consumed=[ConsumedItem(k, v) for k, v in consumed.items()],
        free_item_name=free_name if rule.offer_type == OFFER_BUY_X_GET_Y else None,
    )


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------

def _relevant_units(rule: OfferRule, units: Sequence[_Unit]) -> frozenset:
    """Indexes of the units an application of ``rule`` can ever look at."""
    if rule.offer_type == OFFER_BUY_X_GET_Y:
        is_trigger, is_reward = _bogo_predicates(rule)

        def keep(unit: _Unit) -> bool:
            return is_trigger(unit) or is_reward(unit)
    elif rule.offer_type == OFFER_BUNDLE and rule.config.mode == MODE_CATEGORY:
        slots = rule.config.bundle_categories

        def keep(unit: _Unit) -> bool:
            return any(slot.matches(unit) for slot in slots)
    elif rule.offer_type == OFFER_BUNDLE:
        wanted = {item_id for item_id, _ in rule.bundle_items}

        def keep(unit: _Unit) -> bool:
            return str(unit.menu_item_id) in wanted
    else:
        return frozenset()
    return frozenset(u.index for u in units if keep(u))


class _ItemOfferSearch:
    """
    Item-level rules applied over a shared pool of units.

    A rule only sees the units it can use, so the applications it makes are
    cached against the consumed part of that subset. The best outcome is
    cached per (rules left, units consumed), which keeps the exhaustive search
    to one evaluation per distinct state rather than one per ordering.
    """

    def __init__(self, rules: Sequence[OfferRule], units: Sequence[_Unit]):
        self.rules = list(rules)
        self.units = list(units)
        self.relevant = [_relevant_units(rule, self.units) for rule in self.rules]
        self._runs: Dict[Tuple[int, frozenset], List[_Application]] = {}
        self._best: Dict[Tuple[Tuple[int, ...], frozenset], tuple] = {}

    def available(self, position: int, consumed) -> List[_Unit]:
        relevant = self.relevant[position]
        return [u for u in self.units if u.index in relevant and u.index not in consumed]

    def run(self, position: int, consumed: frozenset) -> List[_Application]:
        """Apply one rule as many times as the remaining units allow."""
        key = (position, consumed & self.relevant[position])
        if key not in self._runs:
            rule = self.rules[position]
            available = self.available(position, consumed)
            apps: List[_Application] = []
            while available and rule.can_apply(len(apps)):
                app = apply_once(rule, available)
                if app is None:
                    break
                apps.append(app)
                used = {u.index for u in app.units}
                available = [u for u in available if u.index not in used]
            self._runs[key] = apps
        return self._runs[key]

    def best(self, remaining: Tuple[int, ...], consumed: frozenset = frozenset()):
        """Largest total over every order of ``remaining``; ties keep the earliest order."""
        if not remaining:
            return 0, []
        key = (remaining, consumed)
        if key not in self._best:
            best_total, best_results = -1, []
            for i, position in enumerate(remaining):
                apps = self.run(position, consumed)
                used = consumed.union(u.index for app in apps for u in app.units)
                rest_total, rest_results = self.best(remaining[:i] + remaining[i + 1:], used)
                total = sum(app.discount for app in apps) + rest_total
                if total > best_total:
                    head = [(self.rules[position], apps)] if apps else []
                    best_total, best_results = total, head + rest_results
            self._best[key] = (best_total, best_results)
        return self._best[key]

    def greedy(self):
        """Take the single best application at each step until nothing applies."""
        consumed: set = set()
        by_rule: Dict[int, List[_Application]] = {}
        order: List[int] = []
        while True:
            best = None
            for position, rule in enumerate(self.rules):
                if not rule.can_apply(len(by_rule.get(position, []))):
                    continue
                app = apply_once(rule, self.available(position, consumed))
                if app is not None and (best is None or app.discount > best[1].discount):
                    best = (position, app)
            if best is None:
                break
            position, app = best
            if position not in by_rule:
                by_rule[position] = []
                order.append(position)
            by_rule[position].append(app)
            consumed.update(u.index for u in app.units)
        results = [(self.rules[p], by_rule[p]) for p in order]
        return sum(a.discount for _, apps in results for a in apps), results


def best_item_offers(rules: Sequence[OfferRule], units: Sequence[_Unit],
                     max_permutation: int = DEFAULT_MAX_PERMUTATION):
    """Pick the combination of item-level offers giving the largest discount.

    Small rule sets are solved by trying every application order, ties going
    to the order that follows ``display_order``; bigger ones fall back to
    applying the best single application at each step.
    """
    rules = sorted(rules, key=lambda r: (r.display_order, r.offer_id))
    if not rules or not units:
        return 0, []
    search = _ItemOfferSearch(rules, units)
    if len(rules) > max_permutation:
        logger.debug("Greedy offer optimisation for %d rules", len(rules))
        return search.greedy()
    return search.best(tuple(range(len(rules))))


def _best_threshold(rules: Sequence[OfferRule], subtotal: int, base: int) -> Tuple[Optional[OfferRule], int]:
    best, best_discount = None, 0
    for rule in sorted(rules, key=lambda r: (r.display_order, r.offer_id)):
        cfg: ThresholdDiscountConfig = rule.config
        if subtotal < cfg.min_amount or not rule.can_apply(0):
            continue
        discount = compute_discount(base, cfg.discount_type, cfg.discount_value)
        if discount > best_discount:
            best, best_discount = rule, discount
    return best, best_discount


def optimize_offers(
    lines: Sequence[CartLine],
    rules: Sequence[OfferRule],
    promo_code: Optional[str] = None,
    promo_codes_stackable: bool = True,
    offers_stackable: bool = True,
    max_permutation: int = DEFAULT_MAX_PERMUTATION,
    subtotal: Optional[int] = None,
) -> OptimizedOffers:
    """
    Compute the discount-maximising set of offers for a cart.

    Item-level offers (bundles, buy-X-get-Y) consume units, so two offers never
    discount the same unit. Order-level offers then apply to what is left:
    the best threshold discount, then the promo code. Customer-built bundle
    lines count towards the subtotal but are never consumed.
    """
    if subtotal is None:
        subtotal = sum(line.total for line in lines)
    units = expand_units(lines)

    item_rules = [r for r in rules if r.is_item_level]
    item_total, item_results = best_item_offers(item_rules, units, max_permutation)
    item_total = max(0, item_total)

    threshold_rules = [r for r in rules if r.offer_type == OFFER_THRESHOLD]
    if offers_stackable or item_total == 0:
        threshold_rule, threshold_discount = _best_threshold(threshold_rules, subtotal, subtotal - item_total)
    else:
        # Not stackable: keep whichever side saves more, item offers on a tie
        threshold_rule, threshold_discount = _best_threshold(threshold_rules, subtotal, subtotal)
        if threshold_rule is not None and threshold_discount > item_total:
            item_total, item_results = 0, []
        else:
            threshold_rule, threshold_discount = None, 0

    applied = [_summarize(rule, apps) for rule, apps in item_results]
    if threshold_rule is not None:
        applied.append(AppliedOffer(
            offer_id=threshold_rule.offer_id,
            offer_name=threshold_rule.name,
            offer_type=threshold_rule.offer_type,
            times_applied=1,
            discount_amount=threshold_discount,
        ))

    discount_so_far = item_total + threshold_discount
    if promo_code and (promo_codes_stackable or discount_so_far == 0):
        promo = _promo_application(rules, promo_code, subtotal, subtotal - discount_so_far)
        if promo is not None:
            applied.append(promo)
    elif promo_code:
        logger.debug("Promo code %s ignored: promo codes do not stack with offers", promo_code)

    total = min(subtotal, sum(o.discount_amount for o in applied))
    return OptimizedOffers(applied_offers=applied, total_discount=total)


def find_promo_rule(rules: Sequence[OfferRule], code: Optional[str]) -> Optional[OfferRule]:
    for rule in rules:
        if rule.offer_type == OFFER_PROMO_CODE and rule.config.matches(code):
            return rule
    return None


def _promo_application(rules, code, subtotal, base) -> Optional[AppliedOffer]:
    rule = find_promo_rule(rules, code)
    if rule is None or not rule.can_apply(0):
        return None
    cfg: PromoCodeConfig = rule.config
    if subtotal < cfg.min_order_amount:
        return None
    discount = compute_discount(base, cfg.discount_type, cfg.discount_value, cfg.max_discount)
    if discount <= 0:
        return None
    return AppliedOffer(
        offer_id=rule.offer_id,
        offer_name=rule.name,
        offer_type=rule.offer_type,
        times_applied=1,
        discount_amount=discount,
    )


# ---------------------------------------------------------------------------
# Progress hints
# ---------------------------------------------------------------------------

def _progress(rule: OfferRule, units: Sequence[_Unit]) -> Tuple[int, int]:
    if rule.offer_type == OFFER_BUNDLE:
        cfg: BundleConfig = rule.config
        if cfg.mode == MODE_CATEGORY:
            required = sum(s.quantity for s in cfg.bundle_categories)
            current = sum(min(s.quantity, sum(1 for u in units if s.matches(u))) for s in cfg.bundle_categories)
        else:
            required = sum(q for _, q in rule.bundle_items)
            current = sum(
                min(q, sum(1 for u in units if str(u.menu_item_id) == item_id))
                for item_id, q in rule.bundle_items
            )
        return current, required
    cfg: BuyXGetYConfig = rule.config
    is_trigger, is_reward = _bogo_predicates(rule)
    required = cfg.trigger_quantity + cfg.reward_quantity
    current = min(required, sum(1 for u in units if is_trigger(u) or is_reward(u)))
    return current, required


def applicable_offers(
    lines: Sequence[CartLine],
    rules: Sequence[OfferRule],
    promo_code: Optional[str] = None,
    subtotal: Optional[int] = None,
) -> List[ApplicableOffer]:
    """Each rule evaluated on its own against the whole cart, with progress towards it.

    Promo code rules are only listed when ``promo_code`` matches them.
    """
    if subtotal is None:
        subtotal = sum(line.total for line in lines)
    units = expand_units(lines)
    out = []
    for rule in sorted(rules, key=lambda r: (r.display_order, r.offer_id)):
        free_name = None
        if rule.is_item_level:
            app = apply_once(rule, units) if rule.can_apply(0) else None
            discount = app.discount if app else 0
            if app and rule.offer_type == OFFER_BUY_X_GET_Y:
                free_name = app.free_item_name
            current, required = _progress(rule, units)
        elif rule.offer_type == OFFER_THRESHOLD:
            cfg = rule.config
            required, current = cfg.min_amount, min(subtotal, cfg.min_amount)
            discount = compute_discount(subtotal, cfg.discount_type, cfg.discount_value) if subtotal >= cfg.min_amount else 0
        else:
            cfg = rule.config
            if not cfg.matches(promo_code):
                continue
            required, current = cfg.min_order_amount, min(subtotal, cfg.min_order_amount)
            discount = (
                compute_discount(subtotal, cfg.discount_type, cfg.discount_value, cfg.max_discount)
                if subtotal >= cfg.min_order_amount else 0
            )
        out.append(ApplicableOffer(
            offer_id=rule.offer_id,
            offer_name=rule.name,
            offer_type=rule.offer_type,
            calculated_discount=discount,
            is_applicable=discount > 0,
            progress_current=current,
            progress_required=required,
            free_item_name=free_name,
            description=rule.description,
        ))
    return out


# ---------------------------------------------------------------------------
# Customer-built bundles
# ---------------------------------------------------------------------------

@dataclass
class BundlePrice:
    unit_price: int
    total_price: int


def calculate_bundle_price(
    fixed_price: int,
    supplements: Iterable[int] = (),
    options: Iterable[int] = (),
    free_options: bool = False,
    quantity: int = 1,
) -> BundlePrice:
    """Price of a bundle the customer composed: fixed price plus supplements, plus options unless free."""
    unit = fixed_price + sum(supplements)
    if not free_options:
        unit += sum(options)
    return BundlePrice(unit_price=unit, total_price=unit * quantity)


def compose_bundle(rule: OfferRule, lines: Sequence[CartLine]) -> Optional[List[int]]:
    """
    Check that ``lines`` make up exactly one instance of a bundle offer.

    Returns the supplement owed for each line, in the order given, or None
    when the lines do not form the bundle (missing, extra or ineligible items).
    """
    if rule.offer_type != OFFER_BUNDLE:
        return None
    cfg: BundleConfig = rule.config
    units = expand_units(lines, include_bundles=True)
    supplements = [0] * len(lines)

    if cfg.mode == MODE_SPECIFIC:
        wanted: Dict[str, int] = {}
        for item_id, quantity in rule.bundle_items:
            wanted[item_id] = wanted.get(item_id, 0) + quantity
        got: Dict[str, int] = {}
        for unit in units:
            key = str(unit.menu_item_id)
            got[key] = got.get(key, 0) + 1
        if not wanted or got != wanted:
            return None
        return supplements

    if len(units) != sum(slot.quantity for slot in cfg.bundle_categories):
        return None
    assigned = _assign_slots(cfg, units)
    if assigned is None or len(assigned) != len(units):
        return None
    for unit, supplement in assigned:
        supplements[unit.line] += supplement
    return supplements
