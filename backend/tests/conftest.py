"""Shared GTFS fixtures: a handful of Kadıköy stops served by two routes."""

import pytest

from bus_monitor.core.schedule_index import ScheduleIndex, build_schedule_index
from bus_monitor.core.tabular import decode_table

STOPS_CSV = """stop_id,stop_code,stop_name,stop_lat,stop_lon,stop_desc
1,A1,Kadıköy,40.9900,29.0230,direction: TUZLA
2,A2,Moda,40.9850,29.0260,
3,A3,Altıyol,40.9880,29.0330,
4,A4,Söğütlüçeşme,40.9930,29.0370,
5,A5,Broken,not-a-number,29.0400,
"""

ROUTES_CSV = """route_id,agency_id,route_short_name,route_long_name,route_type,route_color
R1,IETT,34,Kadıköy - Söğütlüçeşme,3,
R2,IETT,500T,Tuzla - Cevizlibağ,3,e74c3c
R3,IETT,,Nameless,3,
"""

TRIPS_CSV = """route_id,service_id,trip_id,trip_headsign,direction_id
R1,WD,T1,Söğütlüçeşme,0
R1,WD,T2,Kadıköy,1
R2,WD,T3,Tuzla,0
"""

# Rows deliberately out of sequence order; T9 is not in trips.csv, stop 99 not in stops.csv
STOP_TIMES_CSV = """trip_id,arrival_time,departure_time,stop_id,stop_sequence
T1,08:04:00,08:04:00,3,3
T1,08:00:00,08:00:00,1,1
T1,08:02:00,08:02:00,2,2
T1,08:06:00,08:06:00,4,4
T2,09:00:00,09:00:00,4,1
T2,09:05:00,09:05:00,1,2
T3,10:00:00,10:00:00,1,1
T3,10:03:00,10:03:00,99,2
T9,11:00:00,11:00:00,2,1
"""


def build_sample_index() -> ScheduleIndex:
    return build_schedule_index(
        decode_table(STOPS_CSV),
        decode_table(ROUTES_CSV),
        decode_table(TRIPS_CSV),
        decode_table(STOP_TIMES_CSV),
    )


@pytest.fixture
def sample_index() -> ScheduleIndex:
    return build_sample_index()
