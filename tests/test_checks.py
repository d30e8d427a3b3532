from datetime import datetime

import pytest
from request_validator.utils.error_handling import RuleFormatError
from request_validator.validation.checks import (
    BUILTIN_RULES, compile_date_format, match_value, parse_date
)


async def run(make_context, rule, field, value, param=None, **context_kwargs):
    context = make_context(**context_kwargs)
    return await BUILTIN_RULES[rule].validate(field, value, param, context)


@pytest.mark.asyncio
async def test_required(make_context):
    assert await run(make_context, 'required', 'name', None) == 'name is required'
    assert await run(make_context, 'required', 'name', '') == 'name is required'
    assert await run(make_context, 'required', 'count', 0) is None
    assert await run(make_context, 'required', 'agree', False) is None
    assert await run(make_context, 'required', 'name', 'Ada') is None

@pytest.mark.asyncio
async def test_not_empty(make_context):
    assert await run(make_context, 'not-empty', 'bio', '') == 'bio can not be blank'
    assert await run(make_context, 'not-empty', 'bio', None) == 'bio can not be blank'
    assert await run(make_context, 'not-empty', 'bio', ' ') is None

@pytest.mark.asyncio
async def test_length_rules(make_context):
    assert await run(make_context, 'min', 'password', '123', '8') == 'password must be at least 8 characters long'
    assert await run(make_context, 'min', 'password', '12345678', '8') is None
    assert await run(make_context, 'max', 'name', 'x' * 21, '20') == 'name cannot be more than 20 characters long'
    assert await run(make_context, 'max', 'name', 'x' * 20, '20') is None
    assert await run(make_context, 'digits', 'pin', '123', '4') == 'pin should be exactly 4 characters long'
    assert await run(make_context, 'digits', 'pin', 1234, '4') is None
    assert await run(make_context, 'min', 'tags', ['a'], '2') == 'tags must be at least 2 characters long'

@pytest.mark.asyncio
async def test_length_rules_skip_blank_values(make_context):
    assert await run(make_context, 'min', 'password', None, '8') is None
    assert await run(make_context, 'digits', 'pin', '', '4') is None

@pytest.mark.asyncio
@pytest.mark.parametrize('rule,param', [('min', 'abc'), ('max', None), ('digits', '-1')])
async def test_length_rules_reject_bad_params(make_context, rule, param):
    with pytest.raises(RuleFormatError) as exc_info:
        await run(make_context, rule, 'field', 'value', param)
    assert exc_info.value.message == f'Invalid {rule} rule format'

@pytest.mark.asyncio
async def test_type_rules(make_context):
    assert await run(make_context, 'string', 'name', 123) == 'name must be a string'
    assert await run(make_context, 'string', 'name', 'Ada') is None
    assert await run(make_context, 'integer', 'age', '42') == 'age must be an integer'
    assert await run(make_context, 'integer', 'age', 4.5) == 'age must be an integer'
    assert await run(make_context, 'integer', 'age', 5.0) is None
    assert await run(make_context, 'integer', 'age', float('inf')) == 'age must be an integer'
    assert await run(make_context, 'integer', 'age', True) == 'age must be an integer'
    assert await run(make_context, 'integer', 'age', 42) is None
    assert await run(make_context, 'boolean', 'active', 'true') == 'active must be a boolean'
    assert await run(make_context, 'boolean', 'active', False) is None
    # only checked when a value is present
    assert await run(make_context, 'integer', 'age', None) is None

@pytest.mark.asyncio
async def test_email(make_context):
    assert await run(make_context, 'email', 'email', 'bad') == 'Invalid email address for email'
    assert await run(make_context, 'email', 'email', 'user@example') == 'Invalid email address for email'
    assert await run(make_context, 'email', 'email', 'first.last+tag@example.co.uk') is None

@pytest.mark.asyncio
async def test_url(make_context):
    assert await run(make_context, 'url', 'website', 'not-a-url') == 'website must be a valid URL'
    assert await run(make_context, 'url', 'website', 'https://example.com/path?q=1') is None

@pytest.mark.asyncio
async def test_date_default_format(make_context):
    assert await run(make_context, 'date', 'birthday', '2024-02-29') is None
    assert await run(make_context, 'date', 'birthday', '2023-02-29') == \
        'birthday must be a valid date with format YYYY-MM-DD'
    # doubled tokens need both digits
    assert await run(make_context, 'date', 'birthday', '2024-1-5') == \
        'birthday must be a valid date with format YYYY-MM-DD'
    assert await run(make_context, 'date', 'birthday', 'invalid-date', '') == \
        'birthday must be a valid date with format YYYY-MM-DD'
    assert await run(make_context, 'date', 'birthday', '0099-01-05') is None

@pytest.mark.asyncio
async def test_date_custom_format(make_context):
    assert await run(make_context, 'date', 'starts', '31/12/2024 23:59', 'DD/MM/YYYY HH:mm') is None
    assert await run(make_context, 'date', 'starts', '2024-12-31', 'DD/MM/YYYY') == \
        'starts must be a valid date with format DD/MM/YYYY'
    assert await run(make_context, 'date', 'starts', '2024-12-31T08:30:00', 'YYYY-MM-DD[T]HH:mm:ss') is None

@pytest.mark.asyncio
async def test_date_single_letter_tokens(make_context):
    assert await run(make_context, 'date', 'day', '5/1/2024', 'D/M/YYYY') is None
    assert await run(make_context, 'date', 'day', '05/12/2024', 'D/M/YYYY') is None
    assert await run(make_context, 'date', 'day', '9:05', 'H:mm') is None
    # format letters are never matched as literal text
    assert await run(make_context, 'date', 'day', 'D/M/2024', 'D/M/YYYY') == \
        'day must be a valid date with format D/M/YYYY'
    assert await run(make_context, 'date', 'day', '31/2/2024', 'D/M/YYYY') == \
        'day must be a valid date with format D/M/YYYY'

@pytest.mark.asyncio
async def test_date_names_and_meridiem_ignore_case(make_context):
    assert await run(make_context, 'date', 'when', 'january 5, 2024', 'MMMM D, YYYY') is None
    assert await run(make_context, 'date', 'when', 'JAN 05 24', 'MMM DD YY') is None
    assert await run(make_context, 'date', 'when', '07:15 pm', 'hh:mm A') is None
    assert await run(make_context, 'date', 'when', '13:15 PM', 'hh:mm A') == \
        'when must be a valid date with format hh:mm A'
    assert await run(make_context, 'date', 'when', 'Smarch 5, 2024', 'MMMM D, YYYY') == \
        'when must be a valid date with format MMMM D, YYYY'

@pytest.mark.asyncio
@pytest.mark.parametrize('date_format', ['YYYY-MM-DD Q', 'Do MMMM', 'YYYY/WW'])
async def test_date_unknown_letters_are_malformed(make_context, date_format):
    with pytest.raises(RuleFormatError) as exc_info:
        await run(make_context, 'date', 'day', '', date_format)
    assert exc_info.value.message == 'Invalid date rule format'

def test_parse_date_components():
    parsed = parse_date('5/1/24 12:00 am', compile_date_format('D/M/YY hh:mm a'))
    assert parsed == datetime(2024, 1, 5, 0, 0)
    assert parse_date('01/02/70', compile_date_format('DD/MM/YY')) == datetime(1970, 2, 1)
    assert parse_date('29/02', compile_date_format('DD/MM')) == datetime(2000, 2, 29)
    # a component given twice must agree
    assert parse_date('2024-01-05 (5)', compile_date_format('YYYY-MM-DD (D)')) is not None
    assert parse_date('2024-01-05 (6)', compile_date_format('YYYY-MM-DD (D)')) is None

@pytest.mark.asyncio
async def test_in(make_context):
    assert await run(make_context, 'in', 'status', 'invalid', 'active,inactive,pending') == \
        'status must be one of the following values: active, inactive, pending'
    assert await run(make_context, 'in', 'status', 'pending', 'active,inactive,pending') is None
    assert await run(make_context, 'in', 'level', 2, '1,2,3') is None
    with pytest.raises(RuleFormatError):
        await run(make_context, 'in', 'status', 'x', None)

@pytest.mark.asyncio
async def test_character_classes(make_context):
    assert await run(make_context, 'alpha', 'name', 'John123') == 'name must contain only letters'
    assert await run(make_context, 'alpha', 'name', 'John') is None
    assert await run(make_context, 'alphanumeric', 'code', 'ab-12') == \
        'code must contain only letters and numbers'
    assert await run(make_context, 'alphanumeric', 'code', 'ab12') is None

@pytest.mark.asyncio
async def test_phone(make_context):
    assert await run(make_context, 'phone', 'mobile', '+14155552671') is None
    assert await run(make_context, 'phone', 'mobile', '0123') == 'mobile must be a valid phone number'
    assert await run(make_context, 'phone', 'mobile', '+1415555267100000') == 'mobile must be a valid phone number'
    assert await run(make_context, 'phone', 'mobile', '4155552671\n') == 'mobile must be a valid phone number'

@pytest.mark.asyncio
async def test_regex(make_context):
    assert await run(make_context, 'regex', 'code', 'ABC123', r'/^[A-Z]{3}\d+$/') is None
    assert await run(make_context, 'regex', 'code', 'abc', r'/^[A-Z]{3}\d+$/') == 'code format is invalid'
    assert await run(make_context, 'regex', 'time', '12:30', r'/^\d{2}:\d{2}$/') is None
    # unanchored patterns match anywhere
    assert await run(make_context, 'regex', 'code', 'xx42yy', r'\d+') is None
    with pytest.raises(RuleFormatError):
        await run(make_context, 'regex', 'code', 'abc', '/[unclosed/')

@pytest.mark.asyncio
async def test_array_and_object(make_context):
    assert await run(make_context, 'array', 'tags', [1, 2]) is None
    assert await run(make_context, 'array', 'tags', 'not-array') == 'tags must be an array'
    assert await run(make_context, 'object', 'meta', {'a': 1}) is None
    assert await run(make_context, 'object', 'meta', [1]) == 'meta must be an object'
    assert await run(make_context, 'object', 'meta', 'text') == 'meta must be an object'

@pytest.mark.asyncio
async def test_file(make_context, make_upload):
    assert await run(make_context, 'file', 'avatar', None) == 'avatar is required'
    assert await run(make_context, 'file', 'avatar', None, files={'avatar': []}) == 'avatar is required'
    upload = make_upload('/tmp/a.png', 'image/png')
    assert await run(make_context, 'file', 'avatar', None, files={'avatar': [upload]}) is None

@pytest.mark.asyncio
async def test_mimetype_rejection_removes_field_uploads(make_context, make_upload, mock_cleanup):
    files = {
        'documents': [
            make_upload('/tmp/doc1.pdf', 'application/pdf'),
            make_upload('/tmp/image.jpg', 'image/jpeg'),
        ],
        'avatar': [make_upload('/tmp/avatar.png', 'image/png')],
    }
    context = make_context(files=files)
    message = await BUILTIN_RULES['mimetype'].validate('documents', None, 'application/pdf', context)
    assert message == 'Invalid file format for documents. Supported media types are application/pdf'
    removed = sorted(call.args[0] for call in mock_cleanup.unlink.await_args_list)
    assert removed == ['/tmp/doc1.pdf', '/tmp/image.jpg']
    assert context.removed_paths == {'/tmp/doc1.pdf', '/tmp/image.jpg'}

@pytest.mark.asyncio
async def test_mimetype_accepts_allowed_types(make_context, make_upload, mock_cleanup):
    files = {'avatar': [make_upload('/tmp/a.PNG', 'IMAGE/PNG')]}
    assert await run(make_context, 'mimetype', 'avatar', None, 'image/jpeg,image/png', files=files) is None
    assert await run(make_context, 'mimetype', 'avatar', None, 'image/png') is None
    mock_cleanup.unlink.assert_not_awaited()

@pytest.mark.asyncio
async def test_unique_and_exists(make_context, mock_lookup):
    mock_lookup.query.return_value = [{'count': 1}]
    assert await run(make_context, 'unique', 'email', 'a@b.co', 'users,email') == 'email already exists'
    assert await run(make_context, 'exists', 'user_id', 1, 'users,id') is None
    mock_lookup.query.assert_awaited_with('SELECT COUNT(*) AS count FROM users WHERE id = ?', [1])

    mock_lookup.query.return_value = [{'count': 0}]
    assert await run(make_context, 'unique', 'email', 'a@b.co', 'users,email') is None
    assert await run(make_context, 'exists', 'user_id', 1, 'users,id') == 'user_id does not exist'

@pytest.mark.asyncio
async def test_store_rules_skip_blank_values(make_context, mock_lookup):
    assert await run(make_context, 'unique', 'email', '', 'users,email') is None
    assert await run(make_context, 'exists', 'user_id', None, 'users,id') is None
    mock_lookup.query.assert_not_awaited()

@pytest.mark.asyncio
@pytest.mark.parametrize('param', [None, 'users', 'users,email,extra', 'users;drop,email', 'users,email or 1=1'])
async def test_store_rules_reject_bad_params(make_context, mock_lookup, param):
    with pytest.raises(RuleFormatError):
        await run(make_context, 'unique', 'email', 'a@b.co', param)
    mock_lookup.query.assert_not_awaited()

def test_phone_match_value_includes_country_code():
    assert match_value('phone', '5551234', {'phone_code': '+1'}) == '+15551234'
    assert match_value('phone', '5551234', {}) == '5551234'
    assert match_value('mobile', '5551234', {'phone_code': '+1'}) == '5551234'

def test_registry_covers_rule_table():
    assert set(BUILTIN_RULES) == {
        'required', 'not-empty', 'nullable', 'required_if', 'min', 'max', 'digits',
        'string', 'integer', 'boolean', 'email', 'url', 'date', 'in', 'alpha',
        'alphanumeric', 'array', 'object', 'phone', 'regex', 'file', 'mimetype',
        'unique', 'exists',
    }
