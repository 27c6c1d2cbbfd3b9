from faves import Picker, PickerOptions
from faves.catalog import load_catalog


def main() -> None:
    catalog = load_catalog("examples/catalog.yaml")
    picker = Picker(
        PickerOptions(
            items=catalog.items,
            default_settings=catalog.default_settings,
            shortcode_length=catalog.shortcode_length,
        )
    )

    # Hidden taste: earlier in the catalog means better.
    rank = {item_id: index for index, item_id in enumerate(catalog.ids())}

    rounds = 0
    while picker.state.evaluating:
        batch = picker.state.evaluating
        best = min(batch, key=rank.__getitem__)
        picker.pick([best])
        rounds += 1

    print("favorites:", [item["name"] for item in picker.get_favorites()])
    print("batches:", rounds)
    print("link:", picker.get_shortcode_link())


if __name__ == "__main__":
    main()
