"""File-driven pipeline: GeoJSON cells in, IR / CSV / overlay out."""

from typing import Dict, Any, Optional
from pathlib import Path
import ast
import logging
import time
from datetime import datetime

from .computer import DuctStructureComputer
from .geojson_loader import load_geojson_cells
from .proximity import ProximityGraphs, build_proximity_graphs
from .clustering import filter_cells
from .schemas import DuctParameters, build_parameters

logger = logging.getLogger(__name__)


def load_pipeline_parameters(input_path: str) -> Dict[str, Any]:
    """
    Load parameters from FILENAME_param.txt beside the input file if it exists.

    Lines are ``name = value`` with Python literal values; ``#`` starts a
    comment line.

    Args:
        input_path: Path to the cells file

    Returns:
        Dictionary of parameter name -> value. Only includes parameters that were found in the file.
    """
    params = {}
    input_file_path = Path(input_path)
    param_file_path = input_file_path.parent / f"{input_file_path.stem}_param.txt"

    if not param_file_path.exists():
        logger.debug(f"Parameter file not found: {param_file_path}")
        return params

    logger.info(f"Loading parameters from: {param_file_path}")
    with open(param_file_path, 'r') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                logger.warning(f"  Ignoring line {line_num} without '=': {line}")
                continue

            param_name, param_value_str = (part.strip() for part in line.split('=', 1))
            try:
                param_value = ast.literal_eval(param_value_str)
            except (ValueError, SyntaxError) as e:
                logger.warning(f"  Failed to parse parameter on line {line_num}: {line} ({e})")
                continue
            if param_name not in DuctParameters.model_fields:
                logger.warning(f"  Unknown parameter on line {line_num}: {param_name}")
                continue
            params[param_name] = param_value
            logger.debug(f"  Loaded {param_name} = {param_value}")

    return params


def run_pipeline(
    input_path: str,
    output_dir: Optional[str] = None,
    graphs: Optional[ProximityGraphs] = None,
    export_ir: bool = True,
    export_csv: bool = True,
    export_overlay: bool = True,
    overlay_width: int = 2000,
    **parameter_values: Any
) -> Dict[str, Any]:
    """
    Run the full pipeline: cell import → proximity graphs → duct structures → exports.

    Parameter values given here are overridden by the input's
    FILENAME_param.txt file when it defines the same name.

    Args:
        input_path: Path to a GeoJSON detection export
        output_dir: Directory for outputs and the log file (default: beside the input)
        graphs: Precomputed proximity graphs (default: built from Delaunay)
        export_ir: Write FILENAME_TIMESTAMP_topology.json
        export_csv: Write FILENAME_TIMESTAMP_ducts.csv and _cells.csv
        export_overlay: Write FILENAME_TIMESTAMP_overlay.png
        overlay_width: Overlay image width in pixels
        **parameter_values: DuctParameters fields

    Returns:
        Dictionary with:
        - cells_result: Loader result
        - parameters: Validated DuctParameters
        - result: TopologyResult
        - log_file: Path to the log file that was created
        - outputs: Dict of output kind -> path
    """
    input_file_path = Path(input_path)
    input_stem = input_file_path.stem
    out_dir = Path(output_dir) if output_dir else input_file_path.parent
    out_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file_path = out_dir / f"{input_stem}_{timestamp}.log"

    values = dict(parameter_values)
    param_file_params = load_pipeline_parameters(input_path)
    for name, value in param_file_params.items():
        logger.info(f"Using {name} from param file: {value}")
        values[name] = value
    parameters = build_parameters(**values)

    file_handler = logging.FileHandler(log_file_path, mode='w', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s'))
    root_logger = logging.getLogger()
    original_level = root_logger.level if root_logger.level else logging.WARNING
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)

    outputs = {}
    try:
        pipeline_start_time = time.time()
        logger.info("=" * 70)
        logger.info(f"Pipeline started for: {input_path}")
        logger.info(f"Parameters: {parameters.model_dump()}")
        logger.info(f"Log file: {log_file_path}")
        logger.info("=" * 70)

        logger.info("Step 1: Loading cells...")
        step_start = time.time()
        cells_result = load_geojson_cells(input_path)
        cells = cells_result['cells']
        load_time = time.time() - step_start
        logger.info(f"Step 1: Loaded {len(cells)} cells in {load_time:.2f}s")

        graphs_time = None
        if graphs is None:
            logger.info("Step 2: Building proximity graphs...")
            step_start = time.time()
            thresholds = list(parameters.holes_min_distances) + [parameters.duct_max_distance]
            graphs = build_proximity_graphs(filter_cells(cells, parameters.excluded_classes), thresholds)
            graphs_time = time.time() - step_start
            logger.info(f"Step 2: Completed in {graphs_time:.2f}s")
        else:
            logger.info("Step 2: Skipped (graphs supplied)")

        logger.info("Step 3: Computing duct structures...")
        step_start = time.time()
        computer = DuctStructureComputer(parameters)
        result = computer.compute(cells, graphs)
        compute_time = time.time() - step_start
        logger.info(f"Step 3: Completed in {compute_time:.2f}s")

        step_start = time.time()
        prefix = out_dir / f"{input_stem}_{timestamp}"
        if export_ir:
            from .export_ir import build_topology_ir, export_topology_ir
            ir_path = f"{prefix}_topology.json"
            export_topology_ir(build_topology_ir(result, cells, parameters, cells_result), ir_path)
            outputs['ir'] = ir_path
        if export_csv:
            from .export_measurements import export_cell_measurements_csv, export_duct_measurements_csv
            outputs['ducts_csv'] = f"{prefix}_ducts.csv"
            outputs['cells_csv'] = f"{prefix}_cells.csv"
            export_duct_measurements_csv(result.ducts, outputs['ducts_csv'])
            export_cell_measurements_csv(cells, outputs['cells_csv'])
        if export_overlay:
            from .export_overlay import export_overlay_png
            overlay_path = f"{prefix}_overlay.png"
            try:
                export_overlay_png(result, cells, output_path=overlay_path, image_width=overlay_width)
                outputs['overlay'] = overlay_path
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to generate overlay image: {e}", exc_info=True)
        export_time = time.time() - step_start

        pipeline_total_time = time.time() - pipeline_start_time
        logger.info("=" * 70)
        logger.info("Pipeline Timing Summary")
        logger.info("=" * 70)
        logger.info(f"Step 1 (Cell Import): {load_time:.2f}s")
        if graphs_time is not None:
            logger.info(f"Step 2 (Proximity Graphs): {graphs_time:.2f}s")
        logger.info(f"Step 3 (Duct Structures): {compute_time:.2f}s")
        logger.info(f"Exports: {export_time:.2f}s")
        logger.info(f"Total pipeline time: {pipeline_total_time:.2f}s")
        logger.info("=" * 70)
        logger.info("Pipeline completed. Outputs:")
        logger.info(f"  - Log file: {log_file_path}")
        for kind, path in outputs.items():
            logger.info(f"  - {kind}: {path}")
        logger.info("=" * 70)
    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        raise
    finally:
        root_logger.removeHandler(file_handler)
        root_logger.setLevel(original_level)
        file_handler.close()

    return {
        'cells_result': cells_result,
        'parameters': parameters,
        'result': result,
        'log_file': str(log_file_path),
        'outputs': outputs
    }
