import unittest

from fakes import offer

from job_ingest.duplicates import DuplicateDetector, jaccard_similarity


class TestJaccard(unittest.TestCase):
    def test_case_insensitive_tokens(self):
        self.assertEqual(jaccard_similarity("Senior Python Dev", "senior python dev"), 1.0)

    def test_partial_overlap(self):
        self.assertAlmostEqual(jaccard_similarity("a b c", "a b d"), 0.5)

    def test_empty_union_is_zero(self):
        self.assertEqual(jaccard_similarity("", None), 0.0)
        self.assertEqual(jaccard_similarity("   ", ""), 0.0)

    def test_symmetric(self):
        self.assertEqual(
            jaccard_similarity("python backend engineer", "backend engineer"),
            jaccard_similarity("backend engineer", "python backend engineer"),
        )


class TestDuplicateDetector(unittest.TestCase):
    def setUp(self):
        self.detector = DuplicateDetector()

    def test_exact_link_keeps_first(self):
        first = offer("https://x/1", "Backend Engineer", "Acme")
        second = offer("https://x/1", "Completely Different", "Other")
        result = self.detector.remove_duplicates([first, second])
        self.assertEqual(result, [first])

    def test_similar_title_and_company_dropped(self):
        a = offer("https://x/1", "Senior Python Developer", "Acme Sp. z o.o.")
        b = offer("https://x/2", "senior python developer", "acme sp. z o.o.")
        c = offer("https://x/3", "Frontend Engineer", "Acme Sp. z o.o.")
        result = self.detector.remove_duplicates([a, b, c])
        self.assertEqual([o.link for o in result], ["https://x/1", "https://x/3"])

    def test_similar_title_different_company_kept(self):
        a = offer("https://x/1", "Senior Python Developer", "Acme")
        b = offer("https://x/2", "Senior Python Developer", "Globex")
        self.assertEqual(len(self.detector.remove_duplicates([a, b])), 2)

    def test_missing_company_matches_on_title(self):
        a = offer("https://x/1", "Data Engineer", "Acme")
        b = offer("https://x/2", "data engineer", None)
        result = self.detector.remove_duplicates([a, b])
        self.assertEqual([o.link for o in result], ["https://x/1"])

    def test_threshold_is_strict(self):
        # 4 of 5 tokens shared: similarity exactly 0.8 is not a duplicate
        a = offer("https://x/1", "a b c d", "Acme")
        b = offer("https://x/2", "a b c d e", "Acme")
        self.assertEqual(len(self.detector.remove_duplicates([a, b])), 2)

    def test_earlier_entity_wins_regardless_of_order(self):
        a = offer("https://x/1", "Backend Engineer Python", "Acme")
        b = offer("https://x/2", "backend engineer python", "Acme")
        self.assertEqual(self.detector.remove_duplicates([a, b])[0].link, "https://x/1")
        self.assertEqual(self.detector.remove_duplicates([b, a])[0].link, "https://x/2")

    def test_idempotent(self):
        offers = [
            offer("https://x/1", "Backend Engineer", "Acme"),
            offer("https://x/1", "Backend Engineer", "Acme"),
            offer("https://x/2", "backend engineer", "acme"),
            offer("https://x/3", "QA Specialist", "Initech"),
        ]
        once = self.detector.remove_duplicates(offers)
        twice = self.detector.remove_duplicates(once)
        self.assertEqual(once, twice)
        self.assertEqual(len({o.link for o in once}), len(once))

    def test_preserves_input_order(self):
        offers = [offer(f"https://x/{i}", f"Role number{i}", "Acme") for i in range(5)]
        self.assertEqual(self.detector.remove_duplicates(offers), offers)

    def test_empty_input(self):
        self.assertEqual(self.detector.remove_duplicates([]), [])


if __name__ == "__main__":
    unittest.main()
