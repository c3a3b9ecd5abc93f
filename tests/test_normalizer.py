"""
Tests for value normalisation and change detection.
"""
import pytest
from datetime import date
from decimal import Decimal

from core.permissions.normalizer import canonical, changed_keys, normalize, values_equal


@pytest.mark.normalizer
class TestNormalize:

    def test_empty_values_fold_to_none(self):
        assert normalize(None) is None
        assert normalize('') is None
        assert values_equal(None, '')

    def test_numbers_and_numeric_strings_compare_equal(self):
        assert normalize(5) == normalize('5') == normalize('5.00') == '5.00'
        assert normalize(5.0) == '5.00'
        assert normalize(Decimal('100.00')) == normalize('100') == '100.00'

    def test_rounding_is_half_up_to_two_places(self):
        assert normalize('2.675') == '2.68'
        assert normalize(0.125) == '0.13'
        assert normalize('-0.001') == '0.00'

    def test_large_numbers_do_not_lose_precision(self):
        assert normalize('123456789012345678901234567890.5') == \
            '123456789012345678901234567890.50'

    def test_non_finite_numbers_are_kept_verbatim(self):
        assert normalize(Decimal('Infinity')) == 'Infinity'
        assert normalize(Decimal('-Infinity')) == '-Infinity'
        assert normalize(Decimal('NaN')) == 'NaN'
        assert normalize(float('inf')) == 'inf'
        assert changed_keys({'cost': Decimal('100')}, {'cost': Decimal('Infinity')}) == ['cost']

    def test_non_numeric_strings_are_kept(self):
        assert normalize('ABC123') == 'ABC123'
        assert normalize('12 kg') == '12 kg'
        assert normalize('nan') == 'nan'

    def test_booleans_are_not_numbers(self):
        assert normalize(True) == 'true'
        assert normalize(False) == 'false'
        assert not values_equal(True, 1)

    def test_object_key_order_is_ignored(self):
        assert normalize({'b': 1, 'a': 2}) == normalize({'a': 2, 'b': 1})
        assert list(normalize({'b': 1, 'a': 2})) == ['a', 'b']

    def test_array_order_is_significant(self):
        assert normalize([1, 2]) != normalize([2, 1])
        assert normalize([1, '2']) == ['1.00', '2.00']

    def test_nested_structures_normalise_recursively(self):
        old = [{'amount': 50, 'method': 'cash', 'note': ''}]
        new = [{'method': 'cash', 'amount': '50.00', 'note': None}]
        assert values_equal(old, new)

    def test_dates_use_iso_form(self):
        assert normalize(date(2026, 11, 2)) == '2026-11-02'
        assert values_equal(date(2026, 11, 2), '2026-11-02')

    def test_canonical_is_stable(self):
        assert canonical({'b': [1, {'d': 2, 'c': ''}], 'a': None}) == \
            canonical({'a': '', 'b': ['1.0', {'c': None, 'd': '2'}]})


@pytest.mark.normalizer
class TestChangedKeys:

    def test_reports_only_real_changes(self):
        old = {'cost': '100.00', 'status': 'pending', 'pnr': 'ABC123'}
        new = {'cost': '110.00', 'status': 'pending', 'pnr': 'ABC123'}
        assert changed_keys(old, new) == ['cost']

    def test_encoding_differences_are_not_changes(self):
        old = {'cost': Decimal('100.00'), 'note': None}
        new = {'cost': '100', 'note': ''}
        assert changed_keys(old, new) == []

    def test_updated_at_is_ignored(self):
        old = {'cost': '1', 'updated_at': '2026-01-01T00:00:00'}
        new = {'cost': '1', 'updated_at': '2026-01-02T00:00:00'}
        assert changed_keys(old, new) == []

    def test_keeps_insertion_order_of_new_values(self):
        old = {'a': 1, 'b': 1, 'c': 1}
        new = {'c': 2, 'a': 2, 'b': 1}
        assert changed_keys(old, new) == ['c', 'a']

    def test_missing_pre_image_reports_everything(self):
        assert changed_keys(None, {'a': 1, 'updated_at': 'x'}) == ['a']

    def test_empty_post_image(self):
        assert changed_keys({'a': 1}, None) == []
        assert changed_keys({'a': 1}, {}) == []
