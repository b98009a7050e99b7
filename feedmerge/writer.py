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

"""Sinks publishing a merged Dataset."""

import csv
import logging
import os
import tempfile
import zipfile
from io import StringIO

log = logging.getLogger(__name__)


def _WriteArchiveString(archive, filename, stringio):
    zi = zipfile.ZipInfo(filename)
    zi.external_attr = 0o666 << 16  # Set unix permissions to -rw-rw-rw
    zi.compress_type = zipfile.ZIP_DEFLATED
    archive.writestr(zi, stringio.getvalue())


def WriteFeed(dataset, file):
    """Output a dataset as a zipped feed.

    Args:
      dataset: The Dataset to write.
      file: path of new feed file (a string) or a file-like object
    """
    with zipfile.ZipFile(file, "w") as archive:
        for table_name in dataset.GetTableNames():
            columns = dataset.GetTableColumns(table_name)
            table_string = StringIO()
            writer = csv.writer(table_string, lineterminator="\n")
            writer.writerow(columns)
            for row in dataset.GetRows(table_name):
                writer.writerow([row.get(c, "") for c in columns])
            _WriteArchiveString(archive, table_name + ".txt", table_string)


class ZipFeedSink(object):
    """Publishes datasets as <name>.zip files in a directory.

    The zip is first written to a temporary file in the same directory and
    then renamed, so a reader never sees a half written feed.
    """

    def __init__(self, directory):
        self.directory = directory

    def GetPath(self, name):
        if name.endswith(".zip"):
            return os.path.join(self.directory, name)
        return os.path.join(self.directory, name + ".zip")

    def Publish(self, dataset, name):
        path = self.GetPath(name)
        fd, temp_path = tempfile.mkstemp(
            suffix=".tmp", prefix=".feedmerge-", dir=self.directory
        )
        os.close(fd)
        try:
            WriteFeed(dataset, temp_path)
            os.replace(temp_path, path)
        except BaseException:
            os.remove(temp_path)
            raise
        log.info("Published merged feed %s", path)
        return path


class MemorySink(object):
    """Keeps published datasets in memory, keyed by name."""

    def __init__(self):
        self.datasets = {}

    def Publish(self, dataset, name):
        self.datasets[name] = dataset
        return name
