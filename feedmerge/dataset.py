#!/usr/bin/python3

# Copyright (C) 2007 Google Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


from . import tables


class Dataset(object):
    """One version of a feed: a read-only collection of tables.

    Each table is a sequence of rows and each row maps column names to string
    values. Rows are kept in the order they were given so that the tables can
    be streamed in a stable order. A Dataset is never modified once built;
    merging always produces a new one.

    Attributes:
      name: A name for the dataset, usually the path it was loaded from.
      feed_source_name: The name of the source publishing the feed, like
                        'Fake Agency'. It is used to build scoped ids.
      version: The version number of the feed within its source.
      has_blocking_errors: True if the feed had errors when it was loaded and
                           so must not be merged.
    """

    def __init__(
        self,
        table_rows,
        table_columns=None,
        name=None,
        feed_source_name=None,
        version=1,
        has_blocking_errors=False,
        catalog=None,
    ):
        """Initialise.

        Args:
          table_rows: A map from table name to a list of row dicts.
          table_columns: An optional map from table name to its list of
                         columns. Columns of tables missing from it are taken
                         from the rows, in the order they are first seen.
          name: The dataset name.
          feed_source_name: The name of the source publishing the feed.
          version: The feed version number.
          has_blocking_errors: True if the feed can't be merged.
          catalog: The tables.Catalog describing known tables.
        """
        self._catalog = catalog or tables.GetCatalog()
        self._rows = {}
        self._columns = {}
        table_columns = table_columns or {}
        for table_name, rows in list(table_rows.items()):
            self._rows[table_name] = tuple(dict(row) for row in rows)
            if table_name in table_columns:
                self._columns[table_name] = list(table_columns[table_name])
            else:
                self._columns[table_name] = self._ColumnsFromRows(
                    table_name, self._rows[table_name]
                )
        self.name = name or feed_source_name or "feed"
        self.feed_source_name = feed_source_name or self.name
        self.version = version
        self.has_blocking_errors = has_blocking_errors

    def _ColumnsFromRows(self, table_name, rows):
        if self._catalog.HasTable(table_name):
            known = self._catalog.GetTable(table_name).columns
        else:
            known = []
        seen = []
        for row in rows:
            for column in row:
                if column not in seen:
                    seen.append(column)
        # Known columns first, in the order the catalog lists them.
        return [c for c in known if c in seen] + [
            c for c in seen if c not in known
        ]

    def __repr__(self):
        return "<Dataset %s>" % self.name

    def GetCatalog(self):
        return self._catalog

    def HasTable(self, table_name):
        return table_name in self._rows

    def GetTableNames(self):
        """Return the names of the tables in this dataset.

        Known tables come first, in the order they are merged.
        """
        names = [n for n in self._catalog.GetTableNames() if n in self._rows]
        names.extend(sorted(n for n in self._rows if n not in names))
        return names

    def GetRows(self, table_name):
        """Iterate over the rows of a table. Missing tables have no rows."""
        return iter(self._rows.get(table_name, ()))

    def GetTableColumns(self, table_name):
        return list(self._columns.get(table_name, []))

    def GetRowCount(self, table_name=None):
        """Return the row count of a table.

        Args:
          table_name: The table name. If it is None the counts of all tables
                      are returned as a map from table name to count.
        """
        if table_name is None:
            return dict(
                (name, len(rows)) for name, rows in list(self._rows.items())
            )
        return len(self._rows.get(table_name, ()))

    def GetDateRange(self):
        """Return the range of dates on which this feed has service.

        The range covers the start and end dates of every calendar.txt entry
        and every date added by calendar_dates.txt. Dates removed by
        calendar_dates.txt don't shrink the range.

        Returns:
          A tuple of (earliest, latest) YYYYMMDD strings or (None, None) if the
          feed has no service dates at all.
        """
        dates = []
        for row in self.GetRows("calendar"):
            for column in ("start_date", "end_date"):
                if row.get(column):
                    dates.append(row[column])
        for row in self.GetRows("calendar_dates"):
            if row.get("exception_type") == "1" and row.get("date"):
                dates.append(row["date"])
        if not dates:
            return (None, None)
        return (min(dates), max(dates))

    def GetKeyValues(self, key_space):
        """Return the set of ids of key_space listed by this dataset."""
        values = set()
        for table, column in self._catalog.GetListingColumns(key_space):
            for row in self.GetRows(table.name):
                value = row.get(column)
                if value:
                    values.add(value)
        return values
