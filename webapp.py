#!/usr/bin/env python3
"""
Flask Web UI for the BitLocker AD inventory
Shows a finished inventory report with a search box and CSV export
"""

import os
from flask import Flask, render_template, request, redirect, url_for, send_file, flash, jsonify
from werkzeug.utils import secure_filename

from core.dataset_view import FilterableDatasetView
from core.models import InventoryReport
from core.report import format_summary
from utils.config import Config
from utils.csv_utils import ExportError, default_export_filename, export_inventory_csv

OUTPUT_FOLDER = 'downloads'


def create_app(report: InventoryReport, output_folder: str = OUTPUT_FOLDER) -> Flask:
    """Build the web UI bound to one finished report"""
    app = Flask(__name__)
    app.secret_key = os.environ.get('FLASK_SECRET_KEY') or os.urandom(24)
    app.config['OUTPUT_FOLDER'] = output_folder
    app.config['REPORT'] = report

    os.makedirs(output_folder, exist_ok=True)

    def current_view(query: str) -> FilterableDatasetView:
        view = FilterableDatasetView(app.config['REPORT'])
        view.set_filter(query)
        return view

    @app.route('/')
    def index():
        """Inventory grid with search box"""
        query = request.args.get('q', '')
        view = current_view(query)
        report = view.report
        return render_template('inventory.html',
                               rows=view.visible_rows(),
                               query=query,
                               summary=report.summary,
                               summary_line=format_summary(report.summary),
                               generated_at=report.generated_at,
                               default_filename=default_export_filename())

    @app.route('/export', methods=['POST'])
    def export():
        """Export the rows visible under the submitted filter"""
        query = request.form.get('q', '')
        filename = secure_filename(request.form.get('filename', '').strip()) or default_export_filename()
        if not filename.lower().endswith('.csv'):
            filename += '.csv'

        output_path = os.path.join(app.config['OUTPUT_FOLDER'], filename)
        try:
            count = export_inventory_csv(current_view(query).visible_rows(), output_path)
        except ExportError as e:
            app.logger.error(f"Export error: {e}")
            flash(f'Export failed: {e}', 'error')
            return redirect(url_for('index', q=query))

        app.logger.info(f"Exported {count} rows to {output_path}")
        return send_file(os.path.abspath(output_path), as_attachment=True, download_name=filename)

    @app.route('/health')
    def health_check():
        """Health check endpoint"""
        config = Config()
        ad_config_valid = config.validate_ad_config()
        summary = app.config['REPORT'].summary

        return jsonify({
            'status': 'healthy' if ad_config_valid else 'configuration_error',
            'ad_config_valid': ad_config_valid,
            'total': summary.total,
            'with_key': summary.with_key,
            'without_key': summary.without_key,
            'failed_lookups': summary.failed_lookups
        })

    return app


if __name__ == '__main__':
    import sys
    from main import main

    # Same options as the CLI; the web UI starts once the scan finishes
    sys.exit(main(sys.argv[1:] + ['--serve']))
