"""Sanity checks that exercise the harness itself."""

from spectre_harness import TestCase, describe_suite


def _announce(context):
    context.log.info("running this before tests")


def _test_cases(context):
    def truth(ctx):
        assert True == True  # noqa: E712

    def ordering(ctx):
        assert 3 > 2

    def non_empty(ctx):
        assert len("true") > 0

    return [
        TestCase(name="should run", body=truth),
        TestCase(name="should compare numbers", body=ordering),
        TestCase(name="should measure strings", body=non_empty),
    ]


suite = describe_suite(
    id="BASIC",
    title="basic",
    foundation="dev",
    test_cases=_test_cases,
    before_all=_announce,
)
