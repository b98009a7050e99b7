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

"""The tables of a feed, their columns, keys and references.

Identifiers that may be rewritten while merging belong to a key space. A key
space is defined by the tables listing its primary key values (service_id is
defined by both calendar.txt and calendar_dates.txt) and referenced by any
number of other columns, which need not share its name (transfers.txt refers
to the stop_id key space through from_stop_id and to_stop_id).
"""

# Key spaces
AGENCY_ID = "agency_id"
STOP_ID = "stop_id"
ROUTE_ID = "route_id"
TRIP_ID = "trip_id"
SERVICE_ID = "service_id"
SHAPE_ID = "shape_id"
FARE_ID = "fare_id"
RIDER_CATEGORY_ID = "rider_category_id"
ZONE_ID = "zone_id"

ALL_KEY_SPACES = [
    AGENCY_ID,
    STOP_ID,
    ROUTE_ID,
    TRIP_ID,
    SERVICE_ID,
    SHAPE_ID,
    FARE_ID,
    RIDER_CATEGORY_ID,
    ZONE_ID,
]

# Table families, listed in the order they are merged.
CALENDAR = "calendar"
TRIPS = "trips"
TRIP_DEPENDENT = "trip_dependent"
INDEPENDENT = "independent"

FAMILY_ORDER = [CALENDAR, TRIPS, TRIP_DEPENDENT, INDEPENDENT]


class Table(object):
    """Describes one table of a feed.

    Attributes:
      name: The table name like 'stops'.
      file_name: The name of the file holding the table like 'stops.txt'.
      columns: The list of known columns.
      required_columns: Columns which must appear in the file header.
      primary_key: A tuple of columns identifying a row. It is empty for
                   tables like fare_rules.txt which have no key.
      defines: The key space whose values are listed by this table, or None.
      references: A map from column name to the key space it refers to.
      optional_references: Columns of references which may be left blank.
      family: One of CALENDAR, TRIPS, TRIP_DEPENDENT or INDEPENDENT.
      required: True if every feed must have this table.
      shadow_of: For extension tables holding exactly one row per row of
                 another table, the name of that table.
      lists: A map from a non-key column to the key space whose values it
             also lists, like the zone_id of stops.txt.
    """

    def __init__(
        self,
        name,
        columns,
        required_columns=(),
        primary_key=(),
        defines=None,
        references=None,
        optional_references=(),
        family=INDEPENDENT,
        required=False,
        shadow_of=None,
        lists=None,
    ):
        self.name = name
        self.file_name = name + ".txt"
        self.columns = list(columns)
        self.required_columns = list(required_columns)
        self.primary_key = tuple(primary_key)
        self.defines = defines
        self.references = dict(references or {})
        self.optional_references = set(optional_references)
        self.family = family
        self.required = required
        self.shadow_of = shadow_of
        self.lists = dict(lists or {})

    def __repr__(self):
        return "<Table %s>" % self.name

    def GetKey(self, row):
        """Return the primary key value of row as a tuple of strings."""
        return tuple(row.get(column) or "" for column in self.primary_key)

    def IsKeyed(self):
        return bool(self.primary_key)

    def GetScopedColumns(self):
        """Return a map from each column holding a scoped id to its key space."""
        scoped = dict(self.references)
        scoped.update(self.lists)
        if self.defines is not None:
            scoped[self.defines] = self.defines
        return scoped


class Catalog(object):
    """The collection of tables known to the merger."""

    def __init__(self, tables):
        self._tables = list(tables)
        self._by_name = dict((t.name, t) for t in self._tables)

    def GetTable(self, name):
        return self._by_name[name]

    def HasTable(self, name):
        return name in self._by_name

    def GetTableList(self):
        """Return all tables in the order they have to be merged."""
        return sorted(
            self._tables, key=lambda t: FAMILY_ORDER.index(t.family)
        )

    def GetTableNames(self):
        return [t.name for t in self.GetTableList()]

    def GetTablesInFamily(self, family):
        return [t for t in self.GetTableList() if t.family == family]

    def GetKnownFilenames(self):
        return [t.file_name for t in self._tables]

    def GetRequiredTables(self):
        return [t for t in self._tables if t.required]

    def GetDefiningTables(self, key_space):
        """Return the tables listing the values of key_space."""
        return [t for t in self._tables if t.defines == key_space]

    def GetListingColumns(self, key_space):
        """Return (table, column) pairs of every column listing key_space ids.

        These are the columns of the defining tables and the non-key columns
        which also list ids, like stops.zone_id for zones.
        """
        listing = [(t, t.defines) for t in self.GetDefiningTables(key_space)]
        for table in self._tables:
            for column, listed_key_space in list(table.lists.items()):
                if listed_key_space == key_space:
                    listing.append((table, column))
        return listing


_DAYS_OF_WEEK = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

_TABLES = [
    Table(
        "agency",
        [
            "agency_id",
            "agency_name",
            "agency_url",
            "agency_timezone",
            "agency_lang",
            "agency_phone",
            "agency_fare_url",
            "agency_email",
        ],
        required_columns=["agency_name", "agency_url", "agency_timezone"],
        primary_key=["agency_id"],
        defines=AGENCY_ID,
        required=True,
    ),
    Table(
        "stops",
        [
            "stop_id",
            "stop_code",
            "stop_name",
            "stop_desc",
            "stop_lat",
            "stop_lon",
            "zone_id",
            "stop_url",
            "location_type",
            "parent_station",
            "stop_timezone",
            "wheelchair_boarding",
            "level_id",
            "platform_code",
        ],
        required_columns=["stop_id"],
        primary_key=["stop_id"],
        defines=STOP_ID,
        references={"parent_station": STOP_ID},
        optional_references=["parent_station"],
        lists={"zone_id": ZONE_ID},
        required=True,
    ),
    Table(
        "routes",
        [
            "route_id",
            "agency_id",
            "route_short_name",
            "route_long_name",
            "route_desc",
            "route_type",
            "route_url",
            "route_color",
            "route_text_color",
            "route_sort_order",
            "continuous_pickup",
            "continuous_drop_off",
        ],
        required_columns=["route_id", "route_type"],
        primary_key=["route_id"],
        defines=ROUTE_ID,
        references={"agency_id": AGENCY_ID},
        optional_references=["agency_id"],
        required=True,
    ),
    Table(
        "trips",
        [
            "route_id",
            "service_id",
            "trip_id",
            "trip_headsign",
            "trip_short_name",
            "direction_id",
            "block_id",
            "shape_id",
            "wheelchair_accessible",
            "bikes_allowed",
        ],
        required_columns=["route_id", "service_id", "trip_id"],
        primary_key=["trip_id"],
        defines=TRIP_ID,
        references={
            "route_id": ROUTE_ID,
            "service_id": SERVICE_ID,
            "shape_id": SHAPE_ID,
        },
        optional_references=["shape_id"],
        family=TRIPS,
        required=True,
    ),
    Table(
        "stop_times",
        [
            "trip_id",
            "arrival_time",
            "departure_time",
            "stop_id",
            "stop_sequence",
            "stop_headsign",
            "pickup_type",
            "drop_off_type",
            "continuous_pickup",
            "continuous_drop_off",
            "shape_dist_traveled",
            "timepoint",
        ],
        required_columns=["trip_id", "stop_id", "stop_sequence"],
        primary_key=["trip_id", "stop_sequence"],
        references={"trip_id": TRIP_ID, "stop_id": STOP_ID},
        family=TRIP_DEPENDENT,
        required=True,
    ),
    Table(
        "calendar",
        ["service_id"] + _DAYS_OF_WEEK + ["start_date", "end_date"],
        required_columns=["service_id"]
        + _DAYS_OF_WEEK
        + ["start_date", "end_date"],
        primary_key=["service_id"],
        defines=SERVICE_ID,
        family=CALENDAR,
    ),
    Table(
        "calendar_dates",
        ["service_id", "date", "exception_type"],
        required_columns=["service_id", "date", "exception_type"],
        primary_key=["service_id", "date"],
        defines=SERVICE_ID,
        family=CALENDAR,
    ),
    Table(
        "shapes",
        [
            "shape_id",
            "shape_pt_lat",
            "shape_pt_lon",
            "shape_pt_sequence",
            "shape_dist_traveled",
        ],
        required_columns=[
            "shape_id",
            "shape_pt_lat",
            "shape_pt_lon",
            "shape_pt_sequence",
        ],
        primary_key=["shape_id", "shape_pt_sequence"],
        defines=SHAPE_ID,
    ),
    Table(
        "frequencies",
        ["trip_id", "start_time", "end_time", "headway_secs", "exact_times"],
        required_columns=["trip_id", "start_time", "end_time", "headway_secs"],
        primary_key=["trip_id", "start_time"],
        references={"trip_id": TRIP_ID},
        family=TRIP_DEPENDENT,
    ),
    Table(
        "transfers",
        [
            "from_stop_id",
            "to_stop_id",
            "transfer_type",
            "min_transfer_time",
            "from_route_id",
            "to_route_id",
            "from_trip_id",
            "to_trip_id",
        ],
        required_columns=["from_stop_id", "to_stop_id", "transfer_type"],
        primary_key=[
            "from_stop_id",
            "to_stop_id",
            "from_route_id",
            "to_route_id",
            "from_trip_id",
            "to_trip_id",
        ],
        references={
            "from_stop_id": STOP_ID,
            "to_stop_id": STOP_ID,
            "from_route_id": ROUTE_ID,
            "to_route_id": ROUTE_ID,
            "from_trip_id": TRIP_ID,
            "to_trip_id": TRIP_ID,
        },
        optional_references=[
            "from_route_id",
            "to_route_id",
            "from_trip_id",
            "to_trip_id",
        ],
    ),
    Table(
        "fare_attributes",
        [
            "fare_id",
            "price",
            "currency_type",
            "payment_method",
            "transfers",
            "agency_id",
            "transfer_duration",
        ],
        required_columns=[
            "fare_id",
            "price",
            "currency_type",
            "payment_method",
            "transfers",
        ],
        primary_key=["fare_id"],
        defines=FARE_ID,
        references={"agency_id": AGENCY_ID},
        optional_references=["agency_id"],
    ),
    Table(
        "fare_rules",
        ["fare_id", "route_id", "origin_id", "destination_id", "contains_id"],
        required_columns=["fare_id"],
        references={
            "fare_id": FARE_ID,
            "route_id": ROUTE_ID,
            "origin_id": ZONE_ID,
            "destination_id": ZONE_ID,
            "contains_id": ZONE_ID,
        },
        optional_references=[
            "route_id",
            "origin_id",
            "destination_id",
            "contains_id",
        ],
    ),
    Table(
        "feed_info",
        [
            "feed_publisher_name",
            "feed_publisher_url",
            "feed_lang",
            "default_lang",
            "feed_start_date",
            "feed_end_date",
            "feed_version",
            "feed_contact_email",
            "feed_contact_url",
        ],
        required_columns=[
            "feed_publisher_name",
            "feed_publisher_url",
            "feed_lang",
        ],
    ),
    # GTFS+ extension tables
    Table(
        "calendar_attributes",
        ["service_id", "service_description"],
        required_columns=["service_id", "service_description"],
        primary_key=["service_id"],
        references={"service_id": SERVICE_ID},
        family=CALENDAR,
        shadow_of="calendar",
    ),
    Table(
        "directions",
        ["route_id", "direction_id", "direction"],
        required_columns=["route_id", "direction"],
        primary_key=["route_id", "direction_id"],
        references={"route_id": ROUTE_ID},
    ),
    Table(
        "route_attributes",
        ["route_id", "category", "subcategory", "running_way"],
        required_columns=["route_id", "category", "subcategory"],
        primary_key=["route_id"],
        references={"route_id": ROUTE_ID},
    ),
    Table(
        "stop_attributes",
        [
            "stop_id",
            "accessibility_id",
            "cardinal_direction",
            "relative_position",
            "stop_city",
        ],
        required_columns=["stop_id", "accessibility_id"],
        primary_key=["stop_id"],
        references={"stop_id": STOP_ID},
    ),
    Table(
        "realtime_routes",
        [
            "route_id",
            "realtime_enabled",
            "realtime_routename",
            "realtime_routecode",
        ],
        required_columns=["route_id", "realtime_enabled"],
        primary_key=["route_id"],
        references={"route_id": ROUTE_ID},
    ),
    Table(
        "realtime_stops",
        ["trip_id", "stop_id", "realtime_stop_id"],
        required_columns=["trip_id", "stop_id", "realtime_stop_id"],
        primary_key=["trip_id", "stop_id"],
        references={"trip_id": TRIP_ID, "stop_id": STOP_ID},
        family=TRIP_DEPENDENT,
    ),
    Table(
        "timepoints",
        ["trip_id", "stop_id"],
        required_columns=["trip_id", "stop_id"],
        primary_key=["trip_id", "stop_id"],
        references={"trip_id": TRIP_ID, "stop_id": STOP_ID},
        family=TRIP_DEPENDENT,
    ),
    Table(
        "rider_categories",
        ["rider_category_id", "rider_category_description"],
        required_columns=["rider_category_id", "rider_category_description"],
        primary_key=["rider_category_id"],
        defines=RIDER_CATEGORY_ID,
    ),
    Table(
        "fare_rider_categories",
        ["fare_id", "rider_category_id", "price"],
        required_columns=["fare_id", "rider_category_id", "price"],
        primary_key=["fare_id", "rider_category_id"],
        references={"fare_id": FARE_ID, "rider_category_id": RIDER_CATEGORY_ID},
    ),
    Table(
        "farezone_attributes",
        ["zone_id", "zone_name"],
        required_columns=["zone_id", "zone_name"],
        primary_key=["zone_id"],
        defines=ZONE_ID,
    ),
]

default_catalog = Catalog(_TABLES)

# One of these must be present in each feed.
CALENDAR_TABLES = ["calendar", "calendar_dates"]


def GetCatalog():
    return default_catalog
