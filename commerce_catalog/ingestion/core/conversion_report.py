"""
Run report: aggregate statistics plus a self-validation pass that
cross-checks reported counts against the files on disk.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from configs.settings import Settings
from .file_processor import FileResult

logger = logging.getLogger(__name__)


def _rate(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


class ConversionReport:
    """Builds, validates, writes and summarizes the run report"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.path = Path(settings.OUTPUT_DIRECTORY) / settings.REPORT_FILE_NAME

    def build(self, file_results: List[FileResult], started_at: Optional[float], finished_at: float,
              peak_memory_mb: float = 0.0, combined_paths: Optional[List[str]] = None,
              combined_lines: int = 0) -> Dict[str, Any]:
        """
        Assemble the report dictionary.

        Args:
            file_results: One result per discovered file, resumed ones included
            started_at: Run start (epoch seconds), None if unknown
            finished_at: Run end (epoch seconds)
            peak_memory_mb: Peak resident memory observed
            combined_paths: Files of the combined output
            combined_lines: Lines written to the combined output

        Returns:
            Report dictionary with a validation section
        """
        successful = [r for r in file_results if r.succeeded]
        failed = [r for r in file_results if not r.succeeded]

        total_records = sum(r.total_records for r in successful)
        total_products = sum(r.total_products for r in successful)
        with_embeddings = sum(r.with_embeddings for r in successful)
        failed_records = sum(r.failed_records for r in successful)

        duration = round(finished_at - started_at, 2) if started_at is not None else None
        items_per_second = round(total_products / duration, 2) if duration else 0.0

        report = {
            "timestamp": datetime.now().isoformat(),
            "input_directory": str(Path(self.settings.INPUT_DIRECTORY).resolve()),
            "output_directory": str(Path(self.settings.OUTPUT_DIRECTORY).resolve()),
            "configuration": self.settings.describe(),
            "file_statistics": {
                "total_files_discovered": len(file_results),
                "successfully_processed": len(successful),
                "failed_to_process": len(failed),
                "resumed_from_checkpoint": sum(1 for r in file_results if r.resumed),
                "success_rate": _rate(len(successful), len(file_results)),
            },
            "product_statistics": {
                "total_records": total_records,
                "total_products": total_products,
                "products_with_embeddings": with_embeddings,
                "failed_records": failed_records,
                "embedding_success_rate": _rate(with_embeddings, total_products),
            },
            "embedding_features": {
                "primary_dense_embeddings": self.settings.ENABLE_DENSE,
                "title_focused_dense_embeddings": self.settings.ENABLE_DENSE,
                "category_focused_dense_embeddings": self.settings.ENABLE_DENSE,
                "sparse_embeddings": self.settings.ENABLE_SPARSE,
                "search_readiness_score": self.settings.ENABLE_HYBRID,
                "dense_dimensions": self.settings.DENSE_DIM,
                "max_sparse_features": self.settings.MAX_SPARSE_FEATURES,
            },
            "performance": {
                "start_time": datetime.fromtimestamp(started_at).isoformat() if started_at is not None else None,
                "end_time": datetime.fromtimestamp(finished_at).isoformat(),
                "duration_seconds": duration,
                "items_per_second": items_per_second,
                "peak_memory_mb": round(peak_memory_mb, 2),
            },
            "processed_files": {r.file_name: r.to_dict() for r in file_results},
            "combined_output": {
                "paths": list(combined_paths or []),
                "total_lines": combined_lines,
            },
        }

        report["validation"] = self.validate(report)
        return report

    def validate(self, report: Dict[str, Any]) -> Dict[str, Any]:
        """
        Cross-check the report.

        Errors are invariant violations; warnings are suspicious but
        survivable conditions. Neither aborts the run.
        """
        errors: List[str] = []
        warnings: List[str] = []

        file_stats = report["file_statistics"]
        product_stats = report["product_statistics"]

        if file_stats["total_files_discovered"] == 0:
            errors.append("No files discovered - check input directory")
        elif file_stats["successfully_processed"] == 0:
            errors.append("No files successfully processed despite files being discovered")

        if file_stats["successfully_processed"] > 0 and product_stats["total_products"] == 0:
            warnings.append("No products found in processed files")

        if product_stats["products_with_embeddings"] > product_stats["total_products"]:
            errors.append(
                f"Embedding count ({product_stats['products_with_embeddings']}) "
                f"exceeds total products ({product_stats['total_products']})"
            )

        expected_rate = _rate(product_stats["products_with_embeddings"], product_stats["total_products"])
        if product_stats["embedding_success_rate"] != expected_rate:
            errors.append(
                f"Embedding success rate mismatch: reported {product_stats['embedding_success_rate']}, "
                f"expected {expected_rate}"
            )

        for name, data in report["processed_files"].items():
            if data["state"] != "completed":
                warnings.append(f"File {name} failed: {data.get('error') or 'unknown error'}")
                continue

            if data["with_embeddings"] > data["total_products"]:
                errors.append(
                    f"File {name}: embedding count ({data['with_embeddings']}) "
                    f"exceeds total products ({data['total_products']})"
                )
            if data["total_products"] + data["failed_records"] != data["total_records"]:
                errors.append(
                    f"File {name}: {data['total_products']} written + {data['failed_records']} failed "
                    f"does not match {data['total_records']} input records"
                )
            if not data["output_paths"]:
                warnings.append(f"File {name}: no output files recorded")
            for output_path in data["output_paths"]:
                if not Path(output_path).is_file():
                    warnings.append(f"Output file not found: {output_path}")

        combined = report.get("combined_output") or {}
        for output_path in combined.get("paths", []):
            if not Path(output_path).is_file():
                warnings.append(f"Combined output file not found: {output_path}")
        if combined.get("paths") and combined.get("total_lines") != product_stats["total_products"]:
            warnings.append(
                f"Combined output has {combined.get('total_lines')} lines, "
                f"expected {product_stats['total_products']}"
            )

        if report["performance"]["duration_seconds"] is None:
            warnings.append("Duration not recorded - timing information missing")

        return {
            "is_valid": not errors,
            "errors": errors,
            "warnings": warnings,
        }

    def write(self, report: Dict[str, Any]) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False)
        logger.info(f"📄 Report written: {self.path}")
        return self.path

    @staticmethod
    def format_summary(report: Dict[str, Any]) -> str:
        """Human-readable run summary"""
        file_stats = report["file_statistics"]
        product_stats = report["product_statistics"]
        performance = report["performance"]
        validation = report["validation"]

        lines = [
            "",
            "🎉 CONVERSION COMPLETE",
            "=" * 60,
            f"⏱️  Duration: {performance['duration_seconds']} seconds",
            f"📁 Files Processed: {file_stats['successfully_processed']}/{file_stats['total_files_discovered']} "
            f"({file_stats['success_rate']}%)",
            f"📊 Total Products: {product_stats['total_products']}",
            f"🧠 Products with Embeddings: {product_stats['products_with_embeddings']}",
            f"📈 Embedding Success Rate: {product_stats['embedding_success_rate']}%",
            f"🚀 Throughput: {performance['items_per_second']} items/second",
            f"💾 Peak Memory: {performance['peak_memory_mb']} MB",
        ]

        if file_stats["resumed_from_checkpoint"]:
            lines.append(f"📌 Resumed From Checkpoint: {file_stats['resumed_from_checkpoint']} files")

        failed = {name: data for name, data in report["processed_files"].items() if data["state"] != "completed"}
        if failed:
            lines.append(f"\n⚠️  Failed Files: {len(failed)}")
            for name, data in failed.items():
                lines.append(f"   - {name}: {data.get('error')}")

        if not validation["is_valid"]:
            lines.append("\n⚠️  REPORT VALIDATION ISSUES:")
            lines.extend(f"   ❌ {error}" for error in validation["errors"])

        if validation["warnings"]:
            lines.append("\n⚠️  VALIDATION WARNINGS:")
            lines.extend(f"   ⚠️  {warning}" for warning in validation["warnings"])

        if validation["is_valid"] and not validation["warnings"]:
            lines.append("\n✅ REPORT VALIDATION: All checks passed!")

        return "\n".join(lines)
