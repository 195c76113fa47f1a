"""RMS API response bodies used across tests."""

TEMPLATE = "https://ichef.bbci.co.uk/images/ic/{recipe}/p0abc123.jpg"


def music_segments(artist="Radiohead", title="Creep", image_url=TEMPLATE):
    segment = {"segment_type": "music", "titles": {"primary": artist, "secondary": title}}
    if image_url is not None:
        segment["image_url"] = image_url
    return {"data": [segment]}


def broadcasts(*items):
    return {"data": list(items)}


def broadcast(title, start, end, synopsis=None):
    item = {"titles": {"primary": title}, "start": start, "end": end}
    if synopsis is not None:
        item["synopses"] = {"short": synopsis}
    return item
