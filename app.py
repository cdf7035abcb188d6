#!/usr/bin/env python3
"""
Voxel Bricks Web Interface

A simple Gradio-based web UI for converting MagicaVoxel models to
Brickadia saves.

Run with: python app.py
Then open http://localhost:7860 in your browser
"""

import sys
from pathlib import Path
import tempfile

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import gradio as gr
from voxel_bricks import BrickGenerator, ConversionError


def process_model(
    vox_file,
    mode: str,
    width_scale: int,
    depth_scale: int,
    height_scale: int,
    simplify: bool,
    rampify: bool,
    max_brick_length: int
):
    """
    Convert an uploaded .vox model.

    Returns stats text and the path of the written save.
    """
    if vox_file is None:
        return "Please upload a .vox model first.", None

    vox_path = Path(vox_file if isinstance(vox_file, str) else vox_file.name)

    # Ramps are not available for microbricks
    if rampify and mode == "Microbrick":
        mode = "Brick"

    generator = BrickGenerator(
        mode=mode.lower(),
        width_scale=int(width_scale),
        depth_scale=int(depth_scale),
        height_scale=int(height_scale),
        simplify=simplify,
        rampify=rampify,
        max_extent=int(max_brick_length) or None
    )

    try:
        generator.load_vox(vox_path).convert()
    except (ConversionError, ValueError) as e:
        return f"## Conversion failed\n\n{e}", None

    export_dir = tempfile.mkdtemp(prefix="voxbricks_")
    brs_path = str(Path(export_dir) / vox_path.with_suffix(".brs").name)
    generator.export_brs(brs_path)

    stats = generator.get_stats()
    asset_rows = "\n".join(
        f"| {asset} | {count:,} |" for asset, count in stats["bricks_per_asset"].items()
    )

    stats_text = f"""## Conversion Complete!

| Metric | Value |
|--------|-------|
| Grid Size | {stats['grid_size']} |
| Voxel Count | {stats['voxel_count']:,} |
| Brick Count | {stats['brick_count']:,} |
| Colors | {stats['color_count']} |
| Reduction | {stats['reduction_percent']:.1f}% |

| Asset | Bricks |
|-------|--------|
{asset_rows}

**Settings:** {mode}, Scale={width_scale}x{depth_scale}x{height_scale}, \
Simplify={simplify or rampify}, Rampify={rampify}
"""

    return stats_text, brs_path


# Build the Gradio interface
with gr.Blocks(title="Voxel Bricks") as app:

    gr.Markdown("""
    # Voxel Bricks
    ### Convert MagicaVoxel Models to Brickadia Saves

    Upload a .vox model, adjust the settings, and download your save!
    """)

    with gr.Row():
        # Left column - Input
        with gr.Column(scale=1):
            gr.Markdown("### Input Model")

            vox_input = gr.File(
                label="Upload Model (.vox)",
                file_types=[".vox"]
            )

            gr.Markdown("### Settings")

            mode = gr.Dropdown(
                choices=["Brick", "Plate", "Microbrick"],
                value="Brick",
                label="Piece Mode"
            )

            width_scale = gr.Slider(
                minimum=1, maximum=16, value=1, step=1,
                label="Width (voxels per piece, x)"
            )

            depth_scale = gr.Slider(
                minimum=1, maximum=16, value=1, step=1,
                label="Depth (voxels per piece, y)"
            )

            height_scale = gr.Slider(
                minimum=1, maximum=16, value=1, step=1,
                label="Height (voxels per piece, z)"
            )

            with gr.Row():
                simplify = gr.Checkbox(value=True, label="Simplify")
                rampify = gr.Checkbox(value=False, label="Rampify")

            max_brick_length = gr.Slider(
                minimum=0, maximum=256, value=64, step=1,
                label="Max Brick Length (0 = unlimited)"
            )

            generate_btn = gr.Button("Generate Save", variant="primary")

        # Right column - Results
        with gr.Column(scale=1):
            stats_output = gr.Markdown(
                value="Upload a model and click 'Generate' to see results."
            )

            brs_output = gr.File(label="BRS (Brickadia)")

            gr.Markdown("""
            ---
            **Tips:**
            - **Simplify** = fewer, larger bricks
            - **Rampify** = smooth slopes (forces Simplify)
            - **Microbrick** has no ramps, Rampify switches to Brick
            """)

    # Wire up events
    generate_btn.click(
        fn=process_model,
        inputs=[
            vox_input,
            mode,
            width_scale,
            depth_scale,
            height_scale,
            simplify,
            rampify,
            max_brick_length
        ],
        outputs=[stats_output, brs_output]
    )


if __name__ == "__main__":
    print("\n" + "="*60)
    print("Voxel Bricks Web Interface")
    print("="*60)
    print("\nStarting server...")
    print("Open http://localhost:7860 in your browser\n")

    app.launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=False
    )
