"""
Sessão falsa do driver para testes unitários.

Interpreta, sobre tabelas em memória, as formas de CQL que o cqlmap gera
(SELECT/INSERT/UPDATE/DELETE por chave primária e o DDL de sincronização) e
expõe ``cluster.metadata`` no mesmo formato da API de metadados do driver.
"""

import copy
import re
from typing import Any, Dict, List, Optional

from cassandra import InvalidRequest


# --- Metadados (mesma forma de cassandra.metadata) ---

class FakeColumn:
    def __init__(self, name: str, cql_type: str):
        self.name = name
        self.cql_type = cql_type


class FakeIndex:
    def __init__(self, name: str, target: str):
        self.name = name
        self.index_options = {"target": target}


class FakeTable:
    def __init__(self, name: str, columns: Dict[str, str], primary_key: List[str]):
        self.name = name
        self.columns = {col: FakeColumn(col, cql_type) for col, cql_type in columns.items()}
        self.partition_key = [self.columns[pk] for pk in primary_key[:1]]
        self.clustering_key = [self.columns[pk] for pk in primary_key[1:]]
        self.primary_key = self.partition_key + self.clustering_key
        self.indexes: Dict[str, FakeIndex] = {}


class FakeKeyspace:
    def __init__(self, name: str):
        self.name = name
        self.tables: Dict[str, FakeTable] = {}


class FakeClusterMetadata:
    def __init__(self, keyspaces: List[str]):
        self.keyspaces = {name: FakeKeyspace(name) for name in keyspaces}


class FakeCluster:
    def __init__(self, keyspaces: List[str]):
        self.metadata = FakeClusterMetadata(keyspaces)
        self.refreshed: List[str] = []

    def refresh_keyspace_metadata(self, keyspace: str) -> None:
        self.refreshed.append(keyspace)


# --- Statements e resultados ---

class FakePrepared:
    def __init__(self, query_string: str):
        self.query_string = query_string

    def bind(self, values):
        return FakeBound(self, list(values))


class FakeBound:
    def __init__(self, prepared: FakePrepared, values: List[Any]):
        self.prepared_statement = prepared
        self.values = values
        self.consistency_level = None
        self.retry_policy = None


class FakeBatchStatement:
    def __init__(self, batch_type=None):
        self.batch_type = batch_type
        self.entries: List[Any] = []
        self.consistency_level = None
        self.retry_policy = None

    def add(self, statement, parameters=None):
        self.entries.append(statement.bind(parameters or []))


class FakeResultSet:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, was_applied: bool = True):
        self.current_rows = rows or []
        self.was_applied = was_applied

    def one(self):
        return self.current_rows[0] if self.current_rows else None

    def __iter__(self):
        return iter(self.current_rows)


class FakeFuture:
    def __init__(self, result=None, error: Optional[Exception] = None):
        self._result = result
        self._error = error

    def result(self):
        if self._error is not None:
            raise self._error
        return self._result


def _split_top_level(text: str) -> List[str]:
    parts, depth, current = [], 0, ""
    for ch in text:
        if ch in "<(":
            depth += 1
        elif ch in ">)":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append(current.strip())
            current = ""
        else:
            current += ch
    if current.strip():
        parts.append(current.strip())
    return parts


_SELECT = re.compile(r"^SELECT (.+?) FROM (\S+)(?: WHERE (\w+) = \?)?$")
_INSERT = re.compile(r"^INSERT INTO (\S+) \((.+?)\) VALUES \((.+?)\)( IF NOT EXISTS)?(?: USING (.+))?$")
_UPDATE = re.compile(r"^UPDATE (\S+)(?: USING (.+?))? SET (.+) WHERE (\w+) = \?(?: IF (\w+) = \?)?$")
_DELETE = re.compile(r"^DELETE (?:(\w+) )?FROM (\S+)(?: USING (.+?))? WHERE (\w+) = \?$")
_CREATE_TABLE = re.compile(r"^CREATE TABLE IF NOT EXISTS (\S+) \((.+)\)$")
_ALTER_ADD = re.compile(r"^ALTER TABLE (\S+) ADD (\w+) (.+?);?$")
_CREATE_INDEX = re.compile(r"^CREATE INDEX IF NOT EXISTS (\w+) ON (\S+) \((\w+)\);?$")


class FakeSession:
    """
    Sessão em memória. ``rows[tabela][chave]`` guarda as linhas como dicts;
    coleções vazias são gravadas como ausentes, como no Cassandra.
    """

    def __init__(self, keyspace: Optional[str] = "app", keyspaces: Optional[List[str]] = None):
        self.keyspace = keyspace
        self.cluster = FakeCluster(keyspaces if keyspaces is not None else [keyspace])
        self.rows: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self.executed: List[Any] = []
        self.ddl: List[str] = []
        self.prepare_calls: List[str] = []
        self.failures: List[Any] = []

    # --- API do driver ---

    def prepare(self, cql: str) -> FakePrepared:
        self.prepare_calls.append(cql)
        return FakePrepared(cql)

    def execute(self, statement, parameters=None):
        if isinstance(statement, FakeBatchStatement):
            self.executed.append(statement)
            for bound in statement.entries:
                self._run(bound.prepared_statement.query_string, bound.values)
            return FakeResultSet()
        if isinstance(statement, FakeBound):
            self.executed.append(statement)
            return self._run(statement.prepared_statement.query_string, statement.values)
        self.executed.append(statement)
        return self._run(statement.replace("%s", "?"), list(parameters or []))

    def execute_async(self, statement, parameters=None):
        try:
            return FakeFuture(self.execute(statement, parameters))
        except Exception as e:
            return FakeFuture(error=e)

    # --- Auxiliares de teste ---

    def fail_on(self, pattern: str, error: Exception) -> None:
        """Faz a próxima execução cujo CQL contém ``pattern`` levantar ``error``."""
        self.failures.append((pattern, error))

    def table(self, name: str) -> Dict[Any, Dict[str, Any]]:
        return self.rows.setdefault(self._qualify(name), {})

    def bound_statements(self) -> List[FakeBound]:
        return [s for s in self.executed if isinstance(s, FakeBound)]

    def _qualify(self, name: str) -> str:
        if "." in name or not self.keyspace:
            return name
        return f"{self.keyspace}.{name}"

    def _split_name(self, name: str):
        qualified = self._qualify(name)
        keyspace, _, table = qualified.partition(".")
        return keyspace, table

    # --- Interpretação do CQL ---

    def _run(self, cql: str, params: List[Any]):
        for i, (pattern, error) in enumerate(self.failures):
            if pattern in cql:
                del self.failures[i]
                raise error

        values = iter(params)
        for regex, handler in (
            (_SELECT, self._select),
            (_INSERT, self._insert),
            (_UPDATE, self._update),
            (_DELETE, self._delete),
            (_CREATE_TABLE, self._create_table),
            (_ALTER_ADD, self._alter_add),
            (_CREATE_INDEX, self._create_index),
        ):
            match = regex.match(cql.strip())
            if match:
                return handler(match, values)
        raise InvalidRequest(f"CQL não suportado pela sessão falsa: {cql}")

    @staticmethod
    def _skip_using(using: Optional[str], values) -> None:
        for _ in range((using or "").count("?")):
            next(values)

    def _select(self, match, values):
        columns, table, where_col = match.groups()
        rows = list(self.table(table).values())
        if where_col:
            wanted = next(values)
            rows = [r for r in rows if r.get(where_col) == wanted]
        if columns.strip() != "*":
            names = [c.strip() for c in columns.split(",")]
            rows = [{name: copy.deepcopy(r.get(name)) for name in names} for r in rows]
        else:
            rows = [copy.deepcopy(r) for r in rows]
        return FakeResultSet(rows)

    def _insert(self, match, values):
        table, columns, _, if_not_exists, using = match.groups()
        names = [c.strip() for c in columns.split(",")]
        row = {name: next(values) for name in names}
        self._skip_using(using, values)
        rows = self.table(table)
        key = row[self._pk(table)]
        if if_not_exists and key in rows:
            return FakeResultSet([dict(rows[key], **{"[applied]": False})], was_applied=False)
        stored = rows.setdefault(key, {})
        for name, value in row.items():
            self._store(stored, name, value)
        return FakeResultSet(was_applied=True)

    def _update(self, match, values):
        table, using, assignments, pk_col, if_col = match.groups()
        self._skip_using(using, values)
        changes = []
        for assignment in _split_top_level(assignments):
            left, right = [side.strip() for side in assignment.split("=", 1)]
            if left.endswith("[?]"):
                index, item = next(values), next(values)
                changes.append(("replace_at", left[:-3], (index, item)))
            elif right == "?":
                changes.append(("set", left, next(values)))
            elif right == f"{left} + ?":
                changes.append(("append", left, next(values)))
            elif right == f"? + {left}":
                changes.append(("prepend", left, next(values)))
            elif right == f"{left} - ?":
                changes.append(("remove", left, next(values)))
            else:
                raise InvalidRequest(f"Atribuição não suportada: {assignment}")
        key = next(values)
        expected = next(values) if if_col else None

        rows = self.table(table)
        if if_col:
            current = rows.get(key)
            if current is None:
                return FakeResultSet([{"[applied]": False}], was_applied=False)
            if current.get(if_col) != expected:
                return FakeResultSet([{"[applied]": False, if_col: current.get(if_col)}], was_applied=False)
        row = rows.setdefault(key, {pk_col: key})
        for op, column, value in changes:
            self._apply(row, op, column, value)
        return FakeResultSet(was_applied=True)

    def _delete(self, match, values):
        column, table, using, _ = match.groups()
        self._skip_using(using, values)
        key = next(values)
        rows = self.table(table)
        if column is None:
            rows.pop(key, None)
        elif key in rows:
            rows[key].pop(column, None)
        return FakeResultSet()

    # --- Coleções ---

    @staticmethod
    def _store(row: Dict[str, Any], column: str, value: Any) -> None:
        if value is None or (isinstance(value, (list, set, dict)) and not value):
            row.pop(column, None)
        else:
            row[column] = copy.deepcopy(value)

    def _apply(self, row: Dict[str, Any], op: str, column: str, value: Any) -> None:
        current = row.get(column)
        if op == "set":
            new = value
        elif op == "append":
            if isinstance(value, dict):
                new = dict(current or {}, **value)
            elif isinstance(value, set):
                new = set(current or set()) | value
            else:
                new = list(current or []) + list(value)
        elif op == "prepend":
            new = list(value) + list(current or [])
        elif op == "remove":
            if isinstance(current, dict):
                new = {k: v for k, v in current.items() if k not in value}
            elif isinstance(current, set):
                new = current - set(value)
            else:
                new = [item for item in (current or []) if item not in value]
        elif op == "replace_at":
            index, item = value
            if current is None or index >= len(current):
                raise InvalidRequest(f"List index {index} out of bound, list has size {len(current or [])}")
            new = list(current)
            new[index] = item
        else:
            raise ValueError(op)
        self._store(row, column, new)

    # --- DDL ---

    def _pk(self, table: str) -> str:
        keyspace, name = self._split_name(table)
        table_meta = self.cluster.metadata.keyspaces[keyspace].tables.get(name)
        if table_meta is None:
            raise InvalidRequest(f"unconfigured table {name}")
        return table_meta.primary_key[0].name

    def _keyspace_meta(self, keyspace: str) -> FakeKeyspace:
        keyspace_meta = self.cluster.metadata.keyspaces.get(keyspace)
        if keyspace_meta is None:
            raise InvalidRequest(f"Keyspace '{keyspace}' does not exist")
        return keyspace_meta

    def _create_table(self, match, values):
        self.ddl.append(match.group(0))
        keyspace, name = self._split_name(match.group(1))
        keyspace_meta = self._keyspace_meta(keyspace)
        columns: Dict[str, str] = {}
        primary_key: List[str] = []
        for definition in _split_top_level(match.group(2)):
            if definition.upper().startswith("PRIMARY KEY"):
                inner = definition[definition.index("(") + 1:definition.rindex(")")]
                primary_key = [c.strip() for c in inner.replace("(", "").replace(")", "").split(",")]
            else:
                column, cql_type = definition.split(" ", 1)
                columns[column] = cql_type
        keyspace_meta.tables.setdefault(name, FakeTable(name, columns, primary_key))
        return FakeResultSet()

    def _alter_add(self, match, values):
        self.ddl.append(match.group(0))
        keyspace, name = self._split_name(match.group(1))
        table_meta = self._keyspace_meta(keyspace).tables[name]
        column, cql_type = match.group(2), match.group(3)
        if column in table_meta.columns:
            raise InvalidRequest(f"Invalid column name {column} because it conflicts with an existing column")
        table_meta.columns[column] = FakeColumn(column, cql_type)
        return FakeResultSet()

    def _create_index(self, match, values):
        self.ddl.append(match.group(0))
        index_name, table, column = match.groups()
        keyspace, name = self._split_name(table)
        table_meta = self._keyspace_meta(keyspace).tables[name]
        table_meta.indexes.setdefault(index_name, FakeIndex(index_name, column))
        return FakeResultSet()

    def add_table(self, keyspace: str, name: str, columns: Dict[str, str], primary_key: List[str]) -> FakeTable:
        """Cria uma tabela diretamente nos metadados, sem passar pelo DDL."""
        table_meta = FakeTable(name, columns, primary_key)
        self._keyspace_meta(keyspace).tables[name] = table_meta
        return table_meta
