"""Heuristic mapping generation for ACT_ECON codes.

Two generators, both producing CategoryMapping rows for review/upsert:

- Range rules: inclusive numeric code ranges → main category.
  Confidence is fixed per run (curated ranges).
- Keyword rules: score = 10 if the two-digit code prefix is listed
  + 5 per keyword found in the label. Best rule wins when score >= 5;
  confidence = min(score / 20, 1.0).

Rules reference categories by slug; slugs are resolved through the
CategoryCatalog so the same rules work against any database.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from src.classification.mapping_table import CategoryCatalog
from src.models.mapping import CategoryMapping, MappedBy
from src.models.taxonomy import EconomicActivityCode

logger = logging.getLogger(__name__)

PREFIX_SCORE = 10
KEYWORD_SCORE = 5
MIN_KEYWORD_SCORE = 5
SCORE_NORMALIZER = 20.0

RANGE_CONFIDENCE = 0.8

# "Autres services": no directory category.
NEVER_MAPPED_CODES: frozenset[str] = frozenset({"9999"})


@dataclass(frozen=True)
class RangeRule:
    """Inclusive numeric range of codes mapped to one main category."""

    low: int
    high: int
    slug: str

    def matches(self, code: str) -> bool:
        return self.low <= int(code) <= self.high


@dataclass(frozen=True)
class KeywordRule:
    """Keywords matched against the code label, plus two-digit prefixes."""

    slug: str
    keywords: tuple[str, ...]
    prefixes: tuple[str, ...] = field(default_factory=tuple)

    def score(self, code: EconomicActivityCode) -> int:
        label = code.label.lower()
        total = PREFIX_SCORE if code.code[:2] in self.prefixes else 0
        for keyword in self.keywords:
            if keyword.lower() in label:
                total += KEYWORD_SCORE
        return total


DEFAULT_RANGE_RULES: tuple[RangeRule, ...] = (
    RangeRule(100, 343, "agriculture-et-environnement"),
    RangeRule(400, 3999, "industrie-fabrication-et-logistique"),
    RangeRule(4000, 4499, "construction-et-renovation"),
    RangeRule(4500, 4619, "automobile-et-transport"),
    RangeRule(4700, 4799, "industrie-fabrication-et-logistique"),
    RangeRule(4800, 4842, "technologie-et-informatique"),
    RangeRule(4900, 4999, "organismes-publics-et-communautaires"),
    RangeRule(5000, 6239, "commerce-de-detail"),
    RangeRule(6300, 6399, "automobile-et-transport"),
    RangeRule(6410, 6921, "commerce-de-detail"),
    RangeRule(7000, 7712, "finance-assurance-et-juridique"),
    RangeRule(7720, 7722, "technologie-et-informatique"),
    RangeRule(7730, 7739, "finance-assurance-et-juridique"),
    RangeRule(7740, 7759, "services-professionnels"),
    RangeRule(7760, 7799, "finance-assurance-et-juridique"),
    RangeRule(8100, 8411, "organismes-publics-et-communautaires"),
    RangeRule(8500, 8591, "education-et-formation"),
    RangeRule(8600, 8699, "sante-et-bien-etre"),
    RangeRule(9100, 9149, "tourisme-et-hebergement"),
    RangeRule(9200, 9221, "restauration-et-alimentation"),
    RangeRule(9600, 9639, "arts-medias-et-divertissement"),
    RangeRule(9640, 9699, "sports-et-loisirs"),
    RangeRule(9700, 9729, "soins-a-domicile"),
    RangeRule(9730, 9732, "services-funeraires"),
    RangeRule(9740, 9799, "maison-et-services-domestiques"),
    RangeRule(9800, 9900, "organismes-publics-et-communautaires"),
    RangeRule(9910, 9921, "immobilier"),
    RangeRule(9930, 9931, "services-professionnels"),
    RangeRule(9940, 9990, "services-professionnels"),
    RangeRule(9991, 9991, "automobile-et-transport"),
)

DEFAULT_KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        "agriculture-et-environnement",
        ("agriculture", "agricole", "élevage", "culture", "ferme", "bétail",
         "volaille", "pêche", "forestier", "forêt", "érablière", "serre",
         "pépinière", "horticulture"),
        ("01", "02", "03", "04", "05"),
    ),
    KeywordRule(
        "construction-et-renovation",
        ("construction", "bâtiment", "entrepreneur", "maçonnerie", "charpente",
         "plomberie", "électricité", "peinture", "toiture", "excavation",
         "démolition", "rénovation"),
        ("44", "45"),
    ),
    KeywordRule(
        "restauration-et-alimentation",
        ("restaurant", "aliment", "viande", "boulangerie", "pâtisserie",
         "boisson", "café", "traiteur", "alimentation", "bière", "vin",
         "cidre", "confiserie", "chocolat"),
        ("10", "11", "72"),
    ),
    KeywordRule(
        "sante-et-bien-etre",
        ("santé", "médical", "hôpital", "clinique", "dentiste", "vétérinaire",
         "pharmacie", "laboratoire médical", "soins", "thérapie",
         "chiropratique", "optométrie"),
        ("62",),
    ),
    KeywordRule(
        "commerce-de-detail",
        ("magasin", "commerce", "vente au détail", "détail", "boutique",
         "épicerie", "supermarch", "dépanneur", "quincaillerie", "vêtement",
         "chaussure", "bijouterie", "pharmacie"),
        ("44", "45"),
    ),
    KeywordRule(
        "services-professionnels",
        ("comptable", "avocat", "notaire", "consultant", "conseil",
         "architecture", "ingénierie", "design", "publicité", "marketing",
         "expert-conseil", "gestion"),
        ("54", "55"),
    ),
    KeywordRule(
        "technologie-et-informatique",
        ("informatique", "logiciel", "programmation", "internet",
         "télécommunication", "électronique", "technologie", "ordinateur",
         "téléphone", "réseau"),
        ("51", "54"),
    ),
    KeywordRule(
        "automobile-et-transport",
        ("automobile", "véhicule", "transport", "camion", "taxi", "autobus",
         "mécanique automobile", "garage", "pneu", "carrosserie", "entreposage"),
        ("48", "49", "44"),
    ),
    KeywordRule(
        "immobilier",
        ("immobilier", "location immobilière", "immeuble", "propriété",
         "gestion immobilière", "logement", "appartement"),
        ("53",),
    ),
    KeywordRule(
        "tourisme-et-hebergement",
        ("hôtel", "hébergement", "motel", "auberge", "camping", "tourisme",
         "voyage", "agence de voyage"),
        ("72",),
    ),
    KeywordRule(
        "industrie-fabrication-et-logistique",
        ("industrie", "fabrication", "manufacture", "usine", "production",
         "transformation", "entreposage", "logistique", "meuble", "textile",
         "plastique", "caoutchouc", "métallurgie"),
        ("31", "32", "33"),
    ),
    KeywordRule(
        "finance-assurance-et-juridique",
        ("banque", "finance", "crédit", "assurance", "placement",
         "investissement", "courtage", "prêt", "caisse"),
        ("52",),
    ),
    KeywordRule(
        "education-et-formation",
        ("école", "éducation", "enseignement", "formation", "université",
         "collège", "cours", "académie", "tutorat"),
        ("61",),
    ),
    KeywordRule(
        "arts-medias-et-divertissement",
        ("arts", "musée", "théâtre", "spectacle", "cinéma", "divertissement",
         "média", "télévision", "radio", "production", "artiste", "galerie"),
        ("71",),
    ),
    KeywordRule(
        "sports-et-loisirs",
        ("sport", "loisir", "récréation", "gymnase", "fitness", "golf",
         "piscine", "aréna", "centre sportif"),
        ("71",),
    ),
    KeywordRule(
        "maison-et-services-domestiques",
        ("nettoyage", "entretien ménager", "réparation", "aménagement paysager",
         "déneigement", "services domestiques", "blanchisserie", "pressing"),
        ("81",),
    ),
    KeywordRule(
        "organismes-publics-et-communautaires",
        ("administration publique", "gouvernement", "municipal", "organisme",
         "association", "syndic", "services sociaux"),
        ("91",),
    ),
    KeywordRule(
        "services-funeraires",
        ("funéraire", "funérailles", "salon funéraire", "crématorium", "cimetière"),
        ("81",),
    ),
    KeywordRule(
        "agriculture-et-environnement",
        ("mine", "pétrole", "gaz", "carrière", "gravière", "extraction", "minerai"),
        ("06", "07", "08", "09", "21"),
    ),
)


def build_range_mappings(
    codes: Iterable[EconomicActivityCode],
    catalog: CategoryCatalog,
    rules: Iterable[RangeRule] = DEFAULT_RANGE_RULES,
    *,
    confidence: float = RANGE_CONFIDENCE,
) -> list[CategoryMapping]:
    """Map each code to the first range rule containing it."""
    rules = [r for r in rules if _known_slug(catalog, r.slug)]
    mappings: list[CategoryMapping] = []
    for code in codes:
        if code.code in NEVER_MAPPED_CODES:
            continue
        rule = next((r for r in rules if r.matches(code.code)), None)
        if rule is None:
            continue
        main = catalog.main_by_slug(rule.slug)
        mappings.append(CategoryMapping(
            economic_activity_code=code.code,
            main_category_id=main.id,
            confidence_score=confidence,
            mapping_notes=f"Range {rule.low:04d}-{rule.high:04d}: {code.label}",
            mapped_by=MappedBy.RANGE,
        ))
    return mappings


def build_keyword_mappings(
    codes: Iterable[EconomicActivityCode],
    catalog: CategoryCatalog,
    rules: Iterable[KeywordRule] = DEFAULT_KEYWORD_RULES,
) -> list[CategoryMapping]:
    """Score every rule against every code; keep the best rule per code."""
    rules = [r for r in rules if _known_slug(catalog, r.slug)]
    mappings: list[CategoryMapping] = []
    for code in codes:
        if code.code in NEVER_MAPPED_CODES:
            continue
        best_rule: KeywordRule | None = None
        best_score = 0
        for rule in rules:
            score = rule.score(code)
            if score > best_score:
                best_rule, best_score = rule, score
        if best_rule is None or best_score < MIN_KEYWORD_SCORE:
            continue
        main = catalog.main_by_slug(best_rule.slug)
        mappings.append(CategoryMapping(
            economic_activity_code=code.code,
            main_category_id=main.id,
            confidence_score=min(best_score / SCORE_NORMALIZER, 1.0),
            mapping_notes=f"Auto-mapping: {code.label}",
            mapped_by=MappedBy.AUTO,
        ))
    return mappings


def _known_slug(catalog: CategoryCatalog, slug: str) -> bool:
    if catalog.has_slug(slug):
        return True
    logger.warning("Rule references unknown category slug '%s'; ignored", slug)
    return False
