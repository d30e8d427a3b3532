import pytest
from request_validator.utils.normalization import (
    as_text, is_absent, is_blank, parse_int_param, split_list_param, value_length
)

def test_presence_predicates():
    assert is_absent(None)
    assert not is_absent('')
    assert not is_absent(0)

    assert is_blank(None)
    assert is_blank('')
    assert not is_blank(0)
    assert not is_blank(False)
    assert not is_blank([])
    assert not is_blank(' ')

def test_as_text():
    assert as_text('abc') == 'abc'
    assert as_text(42) == '42'
    assert as_text(True) == 'true'
    assert as_text(False) == 'false'
    assert as_text(None) == ''

def test_value_length():
    assert value_length('hello') == 5
    assert value_length([1, 2, 3]) == 3
    assert value_length({'a': 1}) == 1
    assert value_length(1234) == 4
    assert value_length(True) is None
    assert value_length(object()) is None

def test_parse_int_param():
    assert parse_int_param('8') == 8
    assert parse_int_param(' 20 ') == 20
    assert parse_int_param('eight') is None
    assert parse_int_param('') is None
    assert parse_int_param(None) is None

def test_split_list_param():
    assert split_list_param('active,inactive,pending') == ['active', 'inactive', 'pending']
    assert split_list_param('image/jpeg, image/png') == ['image/jpeg', 'image/png']
    assert split_list_param('a,,b,') == ['a', 'b']
    assert split_list_param('') == []
    assert split_list_param(None) == []
