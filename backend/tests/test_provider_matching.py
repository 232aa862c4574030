"""Unit tests for provider similarity, confidence scoring, and pairing."""

import unittest

from provider_sync.matching import (
    AUTO_MATCH_THRESHOLD,
    PARTIAL_MATCH_THRESHOLD,
    classify_confidence,
    plan_pairs,
    score_pair,
)
from provider_sync.matching.similarity import (
    extract_domain,
    name_similarity,
    normalize_business_name,
    normalize_phone,
    phones_match,
    trigram_similarity,
)
from provider_sync.models.enums import MatchClassification, SourceType
from provider_sync.models.source_record import SourceRecord


def _record(
    record_id: int,
    source_type: SourceType,
    name: str,
    *,
    phone: str | None = None,
    address: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    website: str | None = None,
    tags: list[str] | None = None,
) -> SourceRecord:
    return SourceRecord(
        id=record_id,
        source_type=source_type,
        native_id=f"{source_type.value}-{record_id}",
        category_slug="djs",
        name=name,
        phone=phone,
        phone_normalized=normalize_phone(phone),
        address=address,
        latitude=latitude,
        longitude=longitude,
        website=website,
        tags_json=tags or [],
    )


class SimilarityTests(unittest.TestCase):
    def test_business_name_drops_legal_suffix_and_punctuation(self) -> None:
        self.assertEqual(normalize_business_name("Midnight Groove, LLC"), "midnight groove")
        self.assertEqual(normalize_business_name("Co"), "co")
        self.assertEqual(name_similarity("Lens & Light Films Inc.", "lens light films"), 1.0)

    def test_phone_normalization_requires_seven_digits(self) -> None:
        self.assertEqual(normalize_phone("(212) 555-0101"), "2125550101")
        self.assertEqual(normalize_phone("555-0100"), "5550100")
        self.assertIsNone(normalize_phone("12-34"))
        self.assertIsNone(normalize_phone(""))

    def test_phones_match_tolerates_us_country_code(self) -> None:
        self.assertTrue(phones_match("+1 212-555-0101", "(212) 555-0101"))
        self.assertFalse(phones_match("212-555-0101", "212-555-0102"))
        self.assertFalse(phones_match(None, "212-555-0101"))

    def test_extract_domain_strips_scheme_and_www(self) -> None:
        self.assertEqual(extract_domain("https://www.ChrisEvansDJ.com/book?x=1"), "chrisevansdj.com")
        self.assertIsNone(extract_domain(None))

    def test_trigram_similarity_bounds(self) -> None:
        self.assertEqual(trigram_similarity("210 W 42nd St", "210 w 42nd st"), 1.0)
        self.assertEqual(trigram_similarity("", "210 W 42nd St"), 0.0)
        score = trigram_similarity("210 W 42nd St", "210 West 42nd Street")
        self.assertGreater(score, 0.0)
        self.assertLess(score, 1.0)


class ConfidenceScoringTests(unittest.TestCase):
    def test_classification_thresholds(self) -> None:
        self.assertIs(classify_confidence(AUTO_MATCH_THRESHOLD), MatchClassification.AUTO)
        self.assertIs(classify_confidence(0.8499), MatchClassification.PARTIAL)
        self.assertIs(classify_confidence(PARTIAL_MATCH_THRESHOLD), MatchClassification.PARTIAL)
        self.assertIs(classify_confidence(0.6499), MatchClassification.NONE)
        self.assertIs(classify_confidence(0.0), MatchClassification.NONE)

    def test_equal_phone_with_similar_name_is_auto_match(self) -> None:
        primary = _record(1, SourceType.PRIMARY, "Chris Evans DJ", phone="555-0100")
        secondary = _record(2, SourceType.SECONDARY, "Chris Evans DJ Services", phone="555-0100")

        breakdown = score_pair(primary, secondary)

        self.assertTrue(breakdown.phone_match)
        self.assertTrue(breakdown.phone_corroborated)
        self.assertGreaterEqual(breakdown.confidence, AUTO_MATCH_THRESHOLD)
        self.assertIs(breakdown.classification, MatchClassification.AUTO)

    def test_equal_phone_with_unrelated_name_is_not_corroborated(self) -> None:
        primary = _record(1, SourceType.PRIMARY, "Chris Evans DJ", phone="555-0100")
        secondary = _record(2, SourceType.SECONDARY, "Harbor Bakery", phone="555-0100")

        breakdown = score_pair(primary, secondary)

        self.assertTrue(breakdown.phone_match)
        self.assertFalse(breakdown.phone_corroborated)
        self.assertIs(breakdown.classification, MatchClassification.NONE)

    def test_full_field_agreement_scores_one(self) -> None:
        kwargs = {
            "phone": "212-555-0101",
            "address": "210 W 42nd St",
            "latitude": 40.7567,
            "longitude": -73.9882,
            "website": "https://chrisevansdj.com",
            "tags": ["dj", "weddings"],
        }
        primary = _record(1, SourceType.PRIMARY, "Chris Evans DJ", **kwargs)
        secondary = _record(2, SourceType.SECONDARY, "Chris Evans DJ", **kwargs)

        breakdown = score_pair(primary, secondary)

        self.assertEqual(breakdown.confidence, 1.0)
        self.assertEqual(breakdown.geo_distance_meters, 0.0)
        self.assertTrue(breakdown.within_proximity)
        self.assertTrue(breakdown.website_match)

    def test_geo_score_decays_to_zero_past_max_distance(self) -> None:
        primary = _record(1, SourceType.PRIMARY, "Sound Co", latitude=40.7000, longitude=-74.0000)
        near = _record(2, SourceType.SECONDARY, "Sound Co", latitude=40.7010, longitude=-74.0000)
        far = _record(3, SourceType.SECONDARY, "Sound Co", latitude=40.7200, longitude=-74.0000)

        near_breakdown = score_pair(primary, near)
        far_breakdown = score_pair(primary, far)

        self.assertTrue(near_breakdown.within_proximity)
        self.assertGreater(near_breakdown.geo_score, 0.7)
        self.assertFalse(far_breakdown.within_proximity)
        self.assertEqual(far_breakdown.geo_score, 0.0)

    def test_missing_fields_contribute_nothing(self) -> None:
        primary = _record(1, SourceType.PRIMARY, "Sunset Sound")
        secondary = _record(2, SourceType.SECONDARY, "Sunset Sound")

        breakdown = score_pair(primary, secondary)

        self.assertEqual(breakdown.name_score, 1.0)
        self.assertIsNone(breakdown.geo_distance_meters)
        self.assertAlmostEqual(breakdown.confidence, 0.40)
        self.assertIs(breakdown.classification, MatchClassification.NONE)
        self.assertIn("scorer_version", breakdown.as_dict())


class PairingTests(unittest.TestCase):
    def test_each_record_pairs_at_most_once(self) -> None:
        primary = _record(1, SourceType.PRIMARY, "Chris Evans DJ", phone="212-555-0101")
        first = _record(10, SourceType.SECONDARY, "Chris Evans DJ", phone="212-555-0101")
        second = _record(11, SourceType.SECONDARY, "Chris Evans DJ Services", phone="212-555-0101")

        plan = plan_pairs([primary], [first, second])

        self.assertEqual(len(plan.pairs), 1)
        self.assertEqual(plan.pairs[0].secondary.id, 10)
        self.assertEqual([item.record.id for item in plan.unpaired_secondary], [11])
        self.assertIs(plan.unpaired_secondary[0].best_breakdown.classification, MatchClassification.AUTO)
        self.assertEqual(plan.unpaired_primary, [])

    def test_ties_break_by_lowest_record_ids(self) -> None:
        primary_a = _record(2, SourceType.PRIMARY, "Midnight Groove", phone="212-555-0144")
        primary_b = _record(1, SourceType.PRIMARY, "Midnight Groove", phone="212-555-0144")
        secondary = _record(5, SourceType.SECONDARY, "Midnight Groove", phone="212-555-0144")

        plan = plan_pairs([primary_a, primary_b], [secondary])

        self.assertEqual(len(plan.pairs), 1)
        self.assertEqual(plan.pairs[0].primary.id, 1)
        self.assertEqual([item.record.id for item in plan.unpaired_primary], [2])

    def test_distinct_businesses_pair_with_their_own_counterparts(self) -> None:
        primary_a = _record(1, SourceType.PRIMARY, "Chris Evans DJ", phone="212-555-0101")
        primary_b = _record(2, SourceType.PRIMARY, "Chris Evans Events", phone="212-555-0199")
        secondary_a = _record(10, SourceType.SECONDARY, "Chris Evans DJ", phone="212-555-0101")
        secondary_b = _record(11, SourceType.SECONDARY, "Chris Evans Events", phone="212-555-0199")

        plan = plan_pairs([primary_a, primary_b], [secondary_a, secondary_b])

        paired = sorted((pair.primary.id, pair.secondary.id) for pair in plan.pairs)
        self.assertEqual(paired, [(1, 10), (2, 11)])

    def test_records_without_counterpart_are_unpaired(self) -> None:
        primary = _record(1, SourceType.PRIMARY, "Lens Films")

        plan = plan_pairs([primary], [])

        self.assertEqual(plan.pairs, [])
        self.assertEqual(len(plan.unpaired_primary), 1)
        self.assertIsNone(plan.unpaired_primary[0].best_breakdown)
        self.assertEqual(plan.unpaired_primary[0].best_confidence, 0.0)


if __name__ == "__main__":
    unittest.main()
