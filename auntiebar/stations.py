"""Built-in BBC station list and lookups (by id, by service id, by category)."""
from __future__ import annotations

from auntiebar.models import RadioStation, StationCategory


def _stream_url(pool: str, service_id: str, uk_only: bool = False) -> str:
    """Akamai HLS URL for a BBC service. UK-only streams live under /uk/ at a higher bitrate."""
    region, bitrate = ("uk", 320000) if uk_only else ("ww", 96000)
    return (
        f"http://as-hls-{region}-live.akamaized.net/pool_{pool}/live/{region}/"
        f"{service_id}/{service_id}.isml/{service_id}-audio%3d{bitrate}.norewind.m3u8"
    )


def _station(name: str, service_id: str, pool: str, category: StationCategory, uk_only: bool = False) -> RadioStation:
    return RadioStation(
        name=name,
        service_id=service_id,
        stream_url=_stream_url(pool, service_id, uk_only),
        category=category,
        is_uk_only=uk_only,
    )


_N = StationCategory.NATIONAL
_NR = StationCategory.NATIONS
_R = StationCategory.REGIONAL

# BBC local radio in England is served from one shared pool.
_LOCAL_POOL = "41858929"


def _local(name: str, service_id: str) -> RadioStation:
    return _station(name, service_id, _LOCAL_POOL, _R)

STATIONS: tuple[RadioStation, ...] = (
    _station("Radio 1", "bbc_radio_one", "01505109", _N),
    _station("Radio 1Xtra", "bbc_1xtra", "92079267", _N),
    _station("Radio 1 Dance", "bbc_radio_one_dance", "62063498", _N, uk_only=True),
    _station("Radio 2", "bbc_radio_two", "74208725", _N),
    _station("Radio 3", "bbc_radio_three", "23461179", _N),
    _station("Radio 4", "bbc_radio_fourfm", "55057080", _N),
    _station("Radio 4 Extra", "bbc_radio_four_extra", "26173715", _N),
    _station("Radio 5 Live", "bbc_radio_five_live", "89021708", _N),
    _station("Radio 5 Sports Extra", "bbc_five_live_sports_extra", "47315645", _N, uk_only=True),
    _station("Radio 6 Music", "bbc_6music", "81827798", _N),
    _station("Asian Network", "bbc_asian_network", "22108647", _N),
    _station("World Service", "bbc_world_service", "87948813", _N),
    _station("Radio Scotland", "bbc_radio_scotland_fm", "43179541", _NR),
    _station("Radio Scotland Extra", "bbc_radio_scotland_mw", "43179541", _NR, uk_only=True),
    _station("Radio nan Gàidheal", "bbc_radio_nan_gaidheal", "16979144", _NR),
    _station("Radio Wales", "bbc_radio_wales_fm", "97517794", _NR),
    _station("Radio Cymru", "bbc_radio_cymru", "24792333", _NR),
    _station("Radio Cymru 2", "bbc_radio_cymru_2", "24792333", _NR),
    _station("Radio Ulster", "bbc_radio_ulster", "11685443", _NR),
    _station("Radio Foyle", "bbc_radio_foyle", "50143207", _NR),
    _station("BBC London", "bbc_london", "98137350", _R),
    _station("Radio Manchester", "bbc_radio_manchester", "56364218", _R),
    _station("Radio Merseyside", "bbc_radio_merseyside", "43658853", _R),
    _station("Radio Leeds", "bbc_radio_leeds", "89366234", _R),
    _station("Radio Bristol", "bbc_radio_bristol", "46226346", _R),
    _local("Radio Berkshire", "bbc_radio_berkshire"),
    _local("Radio Cambridgeshire", "bbc_radio_cambridge"),
    _local("Radio Cornwall", "bbc_radio_cornwall"),
    _local("CWR", "bbc_radio_coventry_warwickshire"),
    _local("Radio Cumbria", "bbc_radio_cumbria"),
    _local("Radio Derby", "bbc_radio_derby"),
    _local("Radio Devon", "bbc_radio_devon"),
    _local("Essex", "bbc_radio_essex"),
    _local("Radio Gloucestershire", "bbc_radio_gloucestershire"),
    _local("Radio Guernsey", "bbc_radio_guernsey"),
    _local("Hereford & Worcester", "bbc_radio_hereford_worcester"),
    _local("Radio Humberside", "bbc_radio_humberside"),
    _local("Radio Jersey", "bbc_radio_jersey"),
    _local("Radio Kent", "bbc_radio_kent"),
    _local("Radio Lancashire", "bbc_radio_lancashire"),
    _local("Radio Leicester", "bbc_radio_leicester"),
    _local("Radio Lincolnshire", "bbc_radio_lincolnshire"),
    _local("Radio Newcastle", "bbc_radio_newcastle"),
    _local("Radio Norfolk", "bbc_radio_norfolk"),
    _local("Radio Northampton", "bbc_radio_northampton"),
    _local("Radio Nottingham", "bbc_radio_nottingham"),
    _local("Radio Oxford", "bbc_radio_oxford"),
    _local("Radio Sheffield", "bbc_radio_sheffield"),
    _local("Radio Shropshire", "bbc_radio_shropshire"),
    _local("Radio Solent", "bbc_radio_solent"),
    _local("Radio Solent West Dorset", "bbc_radio_solent_west_dorset"),
    _local("Radio Somerset", "bbc_radio_somerset_sound"),
    _local("Radio Stoke", "bbc_radio_stoke"),
    _local("Radio Suffolk", "bbc_radio_suffolk"),
    _local("Radio Surrey", "bbc_radio_surrey"),
    _local("Radio Sussex", "bbc_radio_sussex"),
    _local("Radio Tees", "bbc_tees"),
    _local("Three Counties Radio", "bbc_three_counties_radio"),
    _local("Radio WM", "bbc_wm"),
    _local("Radio Wiltshire", "bbc_radio_wiltshire"),
    _local("Radio York", "bbc_radio_york"),
)


def find_station(station_id: str, stations: tuple[RadioStation, ...] = STATIONS) -> RadioStation | None:
    """Look up by station id, falling back to service id."""
    want = (station_id or "").strip()
    if not want:
        return None
    return next((s for s in stations if s.id == want or s.service_id == want), None)


def sorted_categories() -> list[StationCategory]:
    return sorted(StationCategory, key=lambda c: c.sort_order)


def stations_for(
    category: StationCategory,
    hide_uk_only: bool = False,
    stations: tuple[RadioStation, ...] = STATIONS,
) -> list[RadioStation]:
    return [s for s in stations if s.category == category and not (hide_uk_only and s.is_uk_only)]


def stations_by_category(hide_uk_only: bool = False) -> dict[StationCategory, list[RadioStation]]:
    """Categories in display order; categories left empty by the UK-only filter are omitted."""
    out: dict[StationCategory, list[RadioStation]] = {}
    for category in sorted_categories():
        stations = stations_for(category, hide_uk_only)
        if stations:
            out[category] = stations
    return out


def uk_only_count(stations: tuple[RadioStation, ...] = STATIONS) -> int:
    return sum(1 for s in stations if s.is_uk_only)
