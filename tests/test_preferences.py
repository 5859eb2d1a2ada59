import json

from common.preferences import (
    KEY_LABEL_RECORD,
    KEY_PROCESSED_IDS,
    JsonFileStore,
    Preferences,
    decode_id_set,
    decode_label_record,
    encode_id_set,
    encode_label_record,
)


def test_id_set_encoding_is_sorted_comma_joined():
    assert encode_id_set({"b", "a", "c"}) == "a,b,c"
    assert decode_id_set("a,b,,c") == {"a", "b", "c"}
    assert decode_id_set("") == set()
    assert decode_id_set(None) == set()


def test_label_record_encoding_skips_empty_and_unsafe_labels():
    record = {
        "b": {"Lake", "Forest"},
        "a": {"Mountain"},
        "c": set(),
        "d": {"bad|label", "also,bad"},
    }

    encoded = encode_label_record(record)

    assert encoded == "a=Mountain\nb=Forest|Lake"


def test_label_record_decoding_ignores_malformed_lines():
    raw = "a=Mountain\nno-separator\n=orphan\nb=Forest|Lake|\nc="

    assert decode_label_record(raw) == {"a": {"Mountain"}, "b": {"Forest", "Lake"}}


def test_store_round_trips_through_disk(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = JsonFileStore(path)
    store.update({"one": "1", "two": "2"})
    store.set("two", None)

    reopened = JsonFileStore(path)

    assert reopened.get("one") == "1"
    assert reopened.get("two") is None
    assert not path.with_suffix(".json.tmp").exists()


def test_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonFileStore(path)

    assert store.get("anything") is None


def test_save_classification_writes_both_keys(preferences):
    preferences.save_classification({"b", "a"}, {"a": {"Sky"}})

    data = json.loads(preferences.store.path.read_text(encoding="utf-8"))
    assert data[KEY_PROCESSED_IDS] == "a,b"
    assert data[KEY_LABEL_RECORD] == "a=Sky"
    assert preferences.processed_ids() == {"a", "b"}
    assert preferences.label_record() == {"a": {"Sky"}}


def test_clear_classification_cache(preferences):
    preferences.save_classification({"a"}, {"a": {"Sky"}})
    preferences.set_filter_labels({"Sky"})

    preferences.clear_classification_cache()

    assert preferences.processed_ids() == set()
    assert preferences.label_record() == {}
    assert preferences.filter_labels() == {"Sky"}


def test_filter_folder_blur_and_last_changed(preferences):
    preferences.set_filter_labels(["Lake", "Forest", "bad,label"])
    preferences.set_folder("id-1", "Wallpapers")
    preferences.set_blur_percents(120, -3)
    preferences.set_last_changed(1700000000.5)

    assert preferences.filter_labels() == {"Forest", "Lake"}
    assert preferences.store.get("selected_filter_labels") == "Forest,Lake"
    assert preferences.folder() == ("id-1", "Wallpapers")
    assert preferences.blur_percents() == (100, 0)
    assert preferences.last_changed() == 1700000000.5


def test_blur_percents_fall_back_to_defaults(preferences):
    assert preferences.blur_percents(default_home=20, default_lock=40) == (20, 40)
