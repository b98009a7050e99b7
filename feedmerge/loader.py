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


import codecs
import csv
import logging
import os
import re
import zipfile
from io import StringIO

from . import problems as problems_module
from . import tables
from .dataset import Dataset

log = logging.getLogger(__name__)


class Loader:
    def __init__(
        self,
        feed_path=None,
        problems=problems_module.default_problem_reporter,
        zip=None,
        feed_source_name=None,
        version=1,
        catalog=None,
    ):
        """Initialize a new Loader object.

        Args:
          feed_path: string path to a zip file or directory
          problems: a ProblemReporter object, the default reporter raises an
            exception for each problem
          zip: a zipfile.ZipFile object, optionally used instead of path
          feed_source_name: the name of the source publishing the feed. The
            base name of feed_path is used if it is None.
          version: the version number of the feed within its source
          catalog: the tables.Catalog describing the tables to load
        """
        if catalog is None:
            catalog = tables.GetCatalog()
        if feed_source_name is None:
            if isinstance(feed_path, str):
                feed_source_name = os.path.splitext(
                    os.path.basename(feed_path.rstrip("/\\"))
                )[0]
            else:
                feed_source_name = "feed"

        self._problems = problems
        self._path = feed_path
        self._zip = zip
        self._catalog = catalog
        self._feed_source_name = feed_source_name
        self._version = version

    def _DetermineFormat(self):
        """Determines whether the feed is in a form that we understand, and
           if so, returns True."""
        if self._zip:
            # If zip was passed to __init__ then path isn't used
            assert not self._path
            return True

        if not isinstance(self._path, str) and hasattr(self._path, "read"):
            # A file-like object, used for testing with a BytesIO file
            self._zip = zipfile.ZipFile(self._path, mode="r")
            return True

        if not os.path.exists(self._path):
            self._problems.FeedNotFound(self._path)
            return False

        if self._path.endswith(".zip"):
            try:
                self._zip = zipfile.ZipFile(self._path, mode="r")
            except IOError:  # self._path is a directory
                pass
            except zipfile.BadZipfile:
                self._problems.UnknownFormat(self._path)
                return False

        if not self._zip and not os.path.isdir(self._path):
            self._problems.UnknownFormat(self._path)
            return False

        return True

    def _GetFileNames(self):
        """Returns a list of file names in the feed."""
        if self._zip:
            return self._zip.namelist()
        else:
            return os.listdir(self._path)

    def _CheckFileNames(self):
        filenames = self._GetFileNames()
        known_filenames = self._catalog.GetKnownFilenames()
        for feed_file in filenames:
            if feed_file not in known_filenames:
                if not feed_file.startswith(".") and not feed_file.endswith(
                    "/"
                ):
                    # Don't worry about hidden files and directories
                    self._problems.UnknownFile(feed_file)

    def _GetUtf8Contents(self, file_name):
        """Check for errors in file_name and return a string for csv reader."""
        contents = self._FileContents(file_name)
        if not contents:  # Missing file
            return

        # Check for errors that will prevent csv.reader from working
        if len(contents) >= 2 and contents[0:2] in (
            codecs.BOM_UTF16_BE,
            codecs.BOM_UTF16_LE,
        ):
            self._problems.FileFormat(
                "appears to be encoded in utf-16", (file_name,)
            )
            # Convert and continue, so we can find more errors
            contents = codecs.getdecoder("utf-16")(contents)[0].encode("utf-8")

        null_index = contents.find(b"\0")
        if null_index != -1:
            # It is easier to get some surrounding text than calculate the exact
            # row_num
            m = re.search(b".{,20}\0.{,20}", contents, re.DOTALL)
            self._problems.FileFormat(
                'contains a null in text "%s" at byte %d'
                % (m.group(), null_index + 1),
                (file_name,),
            )
            return

        # strip out any UTF-8 Byte Order Marker (otherwise it'll be
        # treated as part of the first column name, causing a mis-parse)
        contents = contents.lstrip(codecs.BOM_UTF8)
        return contents.decode("utf-8", errors="replace")

    def _ReadHeader(self, table, raw_header):
        """Check the header of a table.

        Returns:
          A tuple (header, valid_columns) of the column names kept and their
          index in raw_header. Blank column names are skipped.
        """
        file_name = table.file_name
        raw_context = (file_name, 1, [""] * len(raw_header), raw_header)
        header = []
        valid_columns = []
        for i, name in enumerate(raw_header):
            if not name.strip():
                self._problems.CsvSyntax(
                    description="The header row should not contain any blank "
                    "values. The column will be skipped.",
                    context=raw_context,
                )
                continue
            header.append(name.strip())
            valid_columns.append(i)

        for name in sorted(set(header)):
            if header.count(name) > 1:
                self._problems.DuplicateColumn(
                    header=name, file_name=file_name, count=header.count(name)
                )

        context = (file_name, 1, [""] * len(header), header)
        unknown_columns = set(header) - set(table.columns)
        if header and len(unknown_columns) == len(header):
            self._problems.CsvSyntax(
                description="The header row did not contain any known column "
                "names. The file is most likely missing the header row.",
                context=raw_context,
            )
        else:
            for column in sorted(unknown_columns):
                self._problems.UnrecognizedColumn(file_name, column, context)
        for column in sorted(set(table.required_columns) - set(header)):
            self._problems.MissingColumn(file_name, column, context)
        return header, valid_columns

    def _ReadCsvDict(self, table):
        """Reads the rows of a table.

        Yields:
          A tuple (row dict, line number, header, values) for each row. Values
          are stripped of surrounding whitespace.
        """
        contents = self._GetUtf8Contents(table.file_name)
        if not contents:
            return
        reader = csv.reader(StringIO(contents, newline=""), skipinitialspace=True)
        raw_header = next(reader, None)
        if raw_header is None:
            self._problems.EmptyFile(table.file_name)
            return
        header, valid_columns = self._ReadHeader(table, raw_header)
        self._table_columns[table.name] = list(dict.fromkeys(header))

        for line_num, raw_row in enumerate(reader, 2):
            if not raw_row:
                continue
            if len(raw_row) != len(raw_header):
                self._problems.WrongNumberOfFields(
                    table.file_name, line_num, len(raw_header), len(raw_row)
                )
            values = [
                raw_row[i].strip() if i < len(raw_row) else ""
                for i in valid_columns
            ]
            yield (dict(zip(header, values)), line_num, header, values)

    def _HasFile(self, file_name):
        """Returns True if there's a file in the current feed with the
           given file_name in the current feed."""
        if self._zip:
            return file_name in self._zip.namelist()
        else:
            file_path = os.path.join(self._path, file_name)
            return os.path.exists(file_path) and os.path.isfile(file_path)

    def _FileContents(self, file_name):
        results = None
        if self._zip:
            try:
                results = self._zip.read(file_name)
            except KeyError:  # file not found in archve
                self._problems.MissingFile(file_name)
                return None
        else:
            try:
                with open(os.path.join(self._path, file_name), "rb") as f:
                    results = f.read()
            except IOError:  # file not found
                self._problems.MissingFile(file_name)
                return None

        if not results:
            self._problems.EmptyFile(file_name)
        return results

    def _LoadTable(self, table):
        rows = []
        keys = set()
        for (d, row_num, header, row) in self._ReadCsvDict(table):
            self._problems.SetFileContext(table.file_name, row_num, row, header)
            if table.IsKeyed():
                key = table.GetKey(d)
                if key in keys:
                    self._problems.DuplicateID(table.primary_key, key)
                    self._problems.ClearContext()
                    continue
                keys.add(key)
            rows.append(d)
            self._problems.ClearContext()
        self._table_rows[table.name] = rows

    def _LoadFeed(self):
        for table in self._catalog.GetTableList():
            if self._HasFile(table.file_name):
                self._LoadTable(table)
            elif table.required:
                self._problems.MissingFile(table.file_name)

        if not any(self._HasFile(t + ".txt") for t in tables.CALENDAR_TABLES):
            self._problems.MissingFile("calendar.txt")

    def Load(self):
        """Load the feed.

        Returns:
          A Dataset. Its has_blocking_errors attribute is True if any error
          was reported while loading.
        """
        self._problems.ClearContext()
        self._table_rows = {}
        self._table_columns = {}
        errors_before = self._problems.GetErrorCount()

        if self._DetermineFormat():
            self._CheckFileNames()
            self._LoadFeed()

        if self._zip:
            self._zip.close()
            self._zip = None

        has_blocking_errors = self._problems.GetErrorCount() > errors_before
        if has_blocking_errors:
            log.warning(
                "Feed %s was loaded with errors", self._feed_source_name
            )
        return Dataset(
            self._table_rows,
            table_columns=self._table_columns,
            name=self._path if isinstance(self._path, str) else None,
            feed_source_name=self._feed_source_name,
            version=self._version,
            has_blocking_errors=has_blocking_errors,
            catalog=self._catalog,
        )
