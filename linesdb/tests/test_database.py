#!/usr/bin/env python3
"""
Test Suite for the LinesDB store

Tests all major features:
- Loading a data directory (inference, explicit schemas, load failures)
- insert / batch_insert / update / batch_update / delete / batch_delete
- Automatic file sync and manual sync
- Boolean and JSON columns
- Composite primary keys
- Raw SQL passthrough
- Configuration from the environment

Run: python -m pytest linesdb/tests/test_database.py -v
"""

import json
import os
import sys
import shutil
import sqlite3
import tempfile
import unittest
from typing import Optional
from unittest import mock

import pydantic

# Add parent directories to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from linesdb import LinesDB, LinesDBConfig, TableConfig, ValidationResult, from_callable, from_pydantic
from linesdb.core.errors import (
    ConstraintError, InferenceError, MissingPrimaryKeyError, RowNotFoundError,
    TableNotFoundError, UnsupportedOperationError, ValidationError,
)
from linesdb.core.schema import Column, Table
from linesdb.core.types import StorageType


class User(pydantic.BaseModel):
    id: int
    name: str
    age: int = pydantic.Field(ge=0)


USERS = [
    {'id': 1, 'name': 'Alice', 'age': 30},
    {'id': 2, 'name': 'Bob', 'age': 25},
]


def write_jsonl(path, rows):
    with open(path, 'w', encoding='utf-8') as f:
        for row in rows:
            f.write(json.dumps(row, separators=(',', ':')) + '\n')


def read_jsonl(path):
    with open(path, 'r', encoding='utf-8') as f:
        return [json.loads(line) for line in f if line.strip()]


def read_text(path):
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


class StoreTestCase(unittest.TestCase):
    """Creates a temporary data directory with a validated users table"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.users_path = os.path.join(self.test_dir, 'users.jsonl')
        write_jsonl(self.users_path, USERS)
        config = LinesDBConfig(
            data_dir=self.test_dir,
            tables={'users': TableConfig(
                source_path=self.users_path,
                validation_schema=from_pydantic(User, primary_key='id'),
            )},
        )
        self.db = LinesDB(config)
        self.db.initialize()

    def tearDown(self):
        self.db.close()
        shutil.rmtree(self.test_dir, ignore_errors=True)


class TestLoading(unittest.TestCase):
    """Test initialize() over a data directory"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_tables_from_directory(self):
        write_jsonl(os.path.join(self.test_dir, 'users.jsonl'), USERS)
        write_jsonl(os.path.join(self.test_dir, 'notes.jsonl'), [{'id': 1, 'body': 'hello'}])
        with open(os.path.join(self.test_dir, 'README.txt'), 'w') as f:
            f.write('not a table')

        with LinesDB.create(self.test_dir) as db:
            self.assertEqual(db.get_table_names(), ['notes', 'users'])
            self.assertEqual(db.find('users'), USERS)

    def test_empty_file_fails_inference(self):
        """Test an empty table is dropped while the others load"""
        write_jsonl(os.path.join(self.test_dir, 'users.jsonl'), USERS)
        write_jsonl(os.path.join(self.test_dir, 'empty.jsonl'), [])

        db = LinesDB(self.test_dir)
        with self.assertLogs('linesdb', level='WARNING'):
            db.initialize()
        try:
            self.assertEqual(db.get_table_names(), ['users'])
            self.assertIsInstance(db.load_errors['empty'], InferenceError)
        finally:
            db.close()

    def test_empty_directory_warns(self):
        db = LinesDB(self.test_dir)
        with self.assertLogs('linesdb', level='WARNING'):
            db.initialize()
        self.assertEqual(db.get_table_names(), [])
        db.close()

    def test_explicit_schema(self):
        path = os.path.join(self.test_dir, 'items.jsonl')
        write_jsonl(path, [{'sku': 'a-1', 'qty': 3}])
        schema = Table(name='ignored', columns=(
            Column('sku', StorageType.TEXT, primary_key=True),
            Column('qty', StorageType.REAL),
        ))
        config = LinesDBConfig(data_dir=self.test_dir, tables={'items': TableConfig(path, schema=schema)})
        with LinesDB(config) as db:
            db.initialize()
            table = db.get_schema('items')
            self.assertEqual(table.name, 'items')
            self.assertEqual(table.primary_key, ('sku',))
            self.assertEqual(table.get_column('qty').storage_type, StorageType.REAL)

    def test_no_schema_and_no_inference(self):
        path = os.path.join(self.test_dir, 'items.jsonl')
        write_jsonl(path, [{'sku': 'a-1'}])
        config = LinesDBConfig(data_dir=self.test_dir, tables={'items': TableConfig(path, auto_infer=False)})
        db = LinesDB(config)
        with self.assertLogs('linesdb', level='WARNING'):
            db.initialize()
        self.assertIsInstance(db.load_errors['items'], InferenceError)
        db.close()

    def test_validated_rows_are_stored(self):
        """Test rows are stored in validated shape when a backward transform exists"""
        path = os.path.join(self.test_dir, 'users.jsonl')
        write_jsonl(path, [{'name': 'Alice'}, {'name': 'Bob'}])
        counter = iter(range(1, 100))

        def add_id(row):
            return ValidationResult(value={'id': next(counter), **row})

        def drop_id(row):
            return {k: v for k, v in row.items() if k != 'id'}

        schema = from_callable(add_id, backward=drop_id, primary_key='id')
        config = LinesDBConfig(data_dir=self.test_dir, tables={'users': TableConfig(path, validation_schema=schema)})
        with LinesDB(config) as db:
            db.initialize()
            self.assertEqual(db.get_schema('users').primary_key, ('id',))
            self.assertEqual(db.find('users'), [{'id': 1, 'name': 'Alice'}, {'id': 2, 'name': 'Bob'}])
            db.sync()
        self.assertEqual(read_jsonl(path), [{'name': 'Alice'}, {'name': 'Bob'}])

    def test_undeclared_keys_survive_sync(self):
        """Test keys a model does not declare stay in the file, and defaults are not added"""
        class Profile(pydantic.BaseModel):
            id: int
            name: str
            nickname: Optional[str] = None

        path = os.path.join(self.test_dir, 'users.jsonl')
        write_jsonl(path, [{'id': 1, 'name': 'Alice', 'email': 'a@x.io'}])
        schema = from_pydantic(Profile, primary_key='id')
        config = LinesDBConfig(data_dir=self.test_dir, tables={'users': TableConfig(path, validation_schema=schema)})
        with LinesDB(config) as db:
            db.initialize()
            db.insert('users', {'id': 2, 'name': 'Bob', 'email': 'b@x.io'})

        self.assertEqual(read_jsonl(path), [
            {'id': 1, 'name': 'Alice', 'email': 'a@x.io'},
            {'id': 2, 'name': 'Bob', 'email': 'b@x.io'},
        ])

    def test_initialize_twice(self):
        write_jsonl(os.path.join(self.test_dir, 'users.jsonl'), USERS)
        with LinesDB.create(self.test_dir) as db:
            db.initialize()
            self.assertEqual(db.find('users'), USERS)

    def test_file_database(self):
        write_jsonl(os.path.join(self.test_dir, 'users.jsonl'), USERS)
        db_path = os.path.join(self.test_dir, 'store.sqlite')
        with LinesDB.create(self.test_dir, db_path=db_path) as db:
            self.assertEqual(len(db.find('users')), 2)
        self.assertTrue(os.path.exists(db_path))


class TestInsert(StoreTestCase):
    """Test insert and batch_insert"""

    def test_insert_syncs_file(self):
        result = self.db.insert('users', {'id': 3, 'name': 'Carol', 'age': 41})
        self.assertEqual(result.changes, 1)
        self.assertEqual(read_jsonl(self.users_path)[-1], {'id': 3, 'name': 'Carol', 'age': 41})

    def test_insert_unknown_table(self):
        with self.assertRaises(TableNotFoundError):
            self.db.insert('nope', {'id': 1})

    def test_insert_duplicate_key(self):
        """Test constraint violations surface as ConstraintError"""
        with self.assertRaises(ConstraintError) as ctx:
            self.db.insert('users', {'id': 1, 'name': 'Again', 'age': 1})
        self.assertIsInstance(ctx.exception.__cause__, sqlite3.IntegrityError)
        self.assertEqual(read_jsonl(self.users_path), USERS)

    def test_batch_insert(self):
        result = self.db.batch_insert('users', [
            {'id': 3, 'name': 'Carol', 'age': 41},
            {'id': 4, 'name': 'Dave', 'age': 19},
        ])
        self.assertEqual(result.changes, 2)
        self.assertEqual(len(read_jsonl(self.users_path)), 4)

    def test_batch_insert_aggregate_validation(self):
        """Test rows 0 and 2 failing produce one error listing both"""
        with self.assertRaises(ValidationError) as ctx:
            self.db.batch_insert('users', [
                {'id': 3, 'name': 'Carol', 'age': -1},
                {'id': 4, 'name': 'Dave', 'age': 19},
                {'id': 5, 'age': 50},
            ])
        errors = ctx.exception.validation_errors
        self.assertEqual(len(errors), 2)
        self.assertEqual([e.row_index for e in errors], [0, 2])
        self.assertEqual(len(self.db.find('users')), 2)

    def test_batch_insert_constraint_is_all_or_nothing(self):
        with self.assertRaises(ConstraintError):
            self.db.batch_insert('users', [
                {'id': 3, 'name': 'Carol', 'age': 41},
                {'id': 1, 'name': 'Dup', 'age': 1},
            ])
        self.assertEqual(self.db.find('users'), USERS)

    def test_batch_insert_empty(self):
        self.assertEqual(self.db.batch_insert('users', []).changes, 0)


class TestUpdate(StoreTestCase):
    """Test update and batch_update"""

    def test_update(self):
        result = self.db.update('users', {'age': 31}, {'id': 1})
        self.assertEqual(result.changes, 1)
        self.assertEqual(self.db.find_one('users', {'id': 1})['age'], 31)
        self.assertEqual(read_jsonl(self.users_path)[0]['age'], 31)

    def test_update_validates_merged_row(self):
        """Test the patch is validated merged over the stored row"""
        with self.assertRaises(ValidationError) as ctx:
            self.db.update('users', {'age': -1}, {'name': 'Bob'})
        self.assertEqual(ctx.exception.validation_errors[0].row_data, {'id': 2, 'name': 'Bob', 'age': -1})
        self.assertEqual(self.db.find_one('users', {'id': 2})['age'], 25)

    def test_update_without_validation(self):
        self.db.update('users', {'age': -1}, {'id': 2}, validate=False)
        self.assertEqual(self.db.find_one('users', {'id': 2})['age'], -1)

    def test_update_rejects_functions(self):
        with self.assertRaises(UnsupportedOperationError):
            self.db.update('users', {'age': 1}, {'age': lambda a: a > 0})

    def test_update_empty_patch(self):
        with self.assertRaises(ValueError):
            self.db.update('users', {}, {'id': 1})

    def test_batch_update(self):
        result = self.db.batch_update('users', [{'id': 1, 'age': 31}, {'id': 2, 'name': 'Robert'}])
        self.assertEqual(result.changes, 2)
        self.assertEqual(self.db.find('users'), [
            {'id': 1, 'name': 'Alice', 'age': 31},
            {'id': 2, 'name': 'Robert', 'age': 25},
        ])

    def test_batch_update_precheck(self):
        """Test one failing record means zero records are updated"""
        before = read_text(self.users_path)
        with self.assertRaises(ValidationError) as ctx:
            self.db.batch_update('users', [{'id': 1, 'age': 31}, {'id': 2, 'age': -1}])
        failure = ctx.exception.validation_errors[0]
        self.assertEqual(len(ctx.exception.validation_errors), 1)
        self.assertEqual(failure.row_index, 1)
        self.assertEqual(failure.primary_key, 2)
        self.assertEqual(self.db.find('users'), USERS)
        self.assertEqual(read_text(self.users_path), before)

    def test_batch_update_missing_primary_key_value(self):
        with self.assertRaises(MissingPrimaryKeyError):
            self.db.batch_update('users', [{'age': 31}])

    def test_batch_update_unknown_row(self):
        with self.assertRaises(RowNotFoundError):
            self.db.batch_update('users', [{'id': 99, 'age': 31}])


class TestDelete(StoreTestCase):
    """Test delete and batch_delete"""

    def test_delete(self):
        result = self.db.delete('users', {'name': 'Alice'})
        self.assertEqual(result.changes, 1)
        self.assertEqual(read_jsonl(self.users_path), [USERS[1]])

    def test_delete_rejects_functions(self):
        with self.assertRaises(UnsupportedOperationError):
            self.db.delete('users', [{'id': 1}, {'age': lambda a: a > 0}])

    def test_delete_empty_list_deletes_nothing(self):
        self.assertEqual(self.db.delete('users', []).changes, 0)

    def test_batch_delete(self):
        result = self.db.batch_delete('users', [{'id': 1}, {'id': 2}, {'id': 3}])
        self.assertEqual(result.changes, 2)
        self.assertEqual(read_jsonl(self.users_path), [])


class TestNoPrimaryKey(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        write_jsonl(os.path.join(self.test_dir, 'logs.jsonl'), [{'msg': 'a'}, {'msg': 'b'}])
        self.db = LinesDB.create(self.test_dir)

    def tearDown(self):
        self.db.close()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_batch_operations_need_primary_key(self):
        with self.assertRaises(MissingPrimaryKeyError):
            self.db.batch_delete('logs', [{'msg': 'a'}])
        with self.assertRaises(MissingPrimaryKeyError):
            self.db.batch_update('logs', [{'msg': 'a'}])

    def test_plain_mutations_work(self):
        self.db.insert('logs', {'msg': 'c'})
        self.db.update('logs', {'msg': 'B'}, {'msg': 'b'})
        self.db.delete('logs', {'msg': 'a'})
        self.assertEqual(self.db.find('logs'), [{'msg': 'B'}, {'msg': 'c'}])


class TestCompositePrimaryKey(unittest.TestCase):
    """Test tables keyed on more than one column"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.test_dir, 'items.jsonl')
        write_jsonl(self.path, [
            {'order_id': 1, 'sku': 'a', 'qty': 1},
            {'order_id': 1, 'sku': 'b', 'qty': 2},
            {'order_id': 2, 'sku': 'a', 'qty': 3},
        ])
        schema = from_callable(lambda row: None, primary_key=['order_id', 'sku'])
        config = LinesDBConfig(
            data_dir=self.test_dir,
            tables={'items': TableConfig(self.path, validation_schema=schema)},
        )
        self.db = LinesDB(config)
        self.db.initialize()

    def tearDown(self):
        self.db.close()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_primary_key(self):
        self.assertEqual(self.db.get_schema('items').primary_key, ('order_id', 'sku'))
        with self.assertRaises(ConstraintError):
            self.db.insert('items', {'order_id': 1, 'sku': 'a', 'qty': 9})

    def test_batch_update(self):
        self.db.batch_update('items', [{'order_id': 1, 'sku': 'a', 'qty': 10}])
        self.assertEqual(
            [row['qty'] for row in self.db.find('items')],
            [10, 2, 3],
        )

    def test_batch_delete(self):
        result = self.db.batch_delete('items', [{'order_id': 1, 'sku': 'a'}, {'order_id': 2, 'sku': 'a'}])
        self.assertEqual(result.changes, 2)
        self.assertEqual(read_jsonl(self.path), [{'order_id': 1, 'sku': 'b', 'qty': 2}])


class TestColumnTypes(unittest.TestCase):
    """Test boolean and JSON columns survive the trip through SQLite"""

    ROWS = [
        {'id': 1, 'active': True, 'meta': {'tags': ['x', 'y'], 'score': 1.5}},
        {'id': 2, 'active': False, 'meta': None},
    ]

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.test_dir, 'things.jsonl')
        write_jsonl(self.path, self.ROWS)
        self.db = LinesDB.create(self.test_dir)

    def tearDown(self):
        self.db.close()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_find_decodes_values(self):
        rows = self.db.find('things')
        self.assertIs(rows[0]['active'], True)
        self.assertIs(rows[1]['active'], False)
        self.assertEqual(rows[0]['meta'], {'tags': ['x', 'y'], 'score': 1.5})

    def test_find_by_boolean(self):
        self.assertEqual(self.db.find('things', {'active': False}), [self.ROWS[1]])

    def test_raw_query_is_not_decoded(self):
        row = self.db.query_one('SELECT active, meta FROM things WHERE id = ?', [1])
        self.assertEqual(row['active'], 1)
        self.assertIsInstance(row['meta'], str)

    def test_round_trip(self):
        """Test sync reproduces the file it loaded"""
        before = read_text(self.path)
        self.db.sync()
        self.assertEqual(read_text(self.path), before)

    def test_insert_json_value(self):
        self.db.insert('things', {'id': 3, 'active': True, 'meta': ['a']})
        self.assertEqual(self.db.find_one('things', {'id': 3})['meta'], ['a'])
        self.assertEqual(read_jsonl(self.path)[2], {'id': 3, 'active': True, 'meta': ['a']})


class TestSync(StoreTestCase):
    """Test automatic and manual file sync"""

    def test_raw_execute_does_not_sync(self):
        before = read_text(self.users_path)
        result = self.db.execute('UPDATE users SET age = ? WHERE id = ?', [99, 1])
        self.assertEqual(result.changes, 1)
        self.assertEqual(read_text(self.users_path), before)

        self.db.sync()
        self.assertEqual(read_jsonl(self.users_path)[0]['age'], 99)

    def test_raw_query(self):
        rows = self.db.query('SELECT name FROM users WHERE age > ? ORDER BY id', [20])
        self.assertEqual(rows, [{'name': 'Alice'}, {'name': 'Bob'}])

    def test_sync_failure_is_logged(self):
        """Test a failed auto-sync is logged and the write still succeeds"""
        self.db.sources['users'] = os.path.join(self.test_dir, 'missing', 'users.jsonl')
        with self.assertLogs('linesdb', level='ERROR') as logs:
            result = self.db.insert('users', {'id': 3, 'name': 'Carol', 'age': 41})
        self.assertEqual(result.changes, 1)
        self.assertTrue(any("Failed to sync table 'users'" in line for line in logs.output))

    def test_close_twice(self):
        self.db.close()
        self.db.close()
        with self.assertRaises(sqlite3.ProgrammingError):
            self.db.query('SELECT 1')


class TestConfig(unittest.TestCase):
    """Test LinesDBConfig.from_env"""

    def test_from_env(self):
        env = {
            'LINESDB_DATA_DIR': '/data',
            'LINESDB_DB_PATH': '/tmp/x.sqlite',
            'LINESDB_FOREIGN_KEYS': '0',
            'LINESDB_LOG_LEVEL': 'debug',
        }
        with mock.patch.dict(os.environ, env, clear=True):
            config = LinesDBConfig.from_env()
        self.assertEqual(config.data_dir, '/data')
        self.assertEqual(config.db_path, '/tmp/x.sqlite')
        self.assertFalse(config.foreign_keys)
        self.assertEqual(config.log_level, 'DEBUG')

    def test_from_env_defaults_and_invalid_values(self):
        env = {'LINESDB_FOREIGN_KEYS': 'yes', 'LINESDB_LOG_LEVEL': 'LOUD'}
        with mock.patch.dict(os.environ, env, clear=True):
            with self.assertLogs('linesdb.config', level='WARNING'):
                config = LinesDBConfig.from_env('/data')
        self.assertEqual(config.db_path, ':memory:')
        self.assertTrue(config.foreign_keys)
        self.assertIsNone(config.log_level)

    def test_from_env_requires_data_dir(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                LinesDBConfig.from_env()


if __name__ == '__main__':
    unittest.main()
