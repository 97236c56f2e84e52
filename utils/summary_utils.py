"""
Summary Tables

Builds pandas tables from collection metadata and import reports for the
console output of vcf_admin.py and vcf_import.py.
"""

import pandas as pd

from config.constants import (
    META_VCFS, META_HEADERS, META_SAMPLES, META_SAMPLE_NAME, META_SAMPLE_VCFID,
)
from .errors import describe_error


class SummaryDataCalculator:
    """Tabulate collection metadata and pipeline errors"""

    def files_table(self, metadata):
        """One row per imported file: name, file format, sample count"""
        vcfs = metadata.get(META_VCFS, [])
        headers = metadata.get(META_HEADERS, [])
        samples_df = self.samples_table(metadata)
        counts = samples_df.groupby('vcfid').size() if not samples_df.empty else pd.Series(dtype=int)

        rows = []
        for index, vcf in enumerate(vcfs):
            header = headers[index] if index < len(headers) else {}
            rows.append({
                'vcfid': index,
                'file': vcf,
                'fileformat': header.get('fileformat', ''),
                'contigs': len(header.get('contigs', [])),
                'samples': int(counts.get(index, 0)),
            })
        return pd.DataFrame(rows, columns=['vcfid', 'file', 'fileformat', 'contigs', 'samples'])

    def samples_table(self, metadata):
        """One row per sample: name and the file it came from"""
        vcfs = metadata.get(META_VCFS, [])
        rows = [
            {
                'sample': sample[META_SAMPLE_NAME],
                'vcfid': sample[META_SAMPLE_VCFID],
                'file': vcfs[sample[META_SAMPLE_VCFID]] if sample[META_SAMPLE_VCFID] < len(vcfs) else None,
            }
            for sample in metadata.get(META_SAMPLES, [])
        ]
        return pd.DataFrame(rows, columns=['sample', 'vcfid', 'file'])

    def errors_table(self, report):
        """One row per recorded error of an ImportReport, dropped records included"""
        rows = [
            {'stage': stage, 'kind': getattr(getattr(exc, 'kind', None), 'value', 'unexpected'),
             'locus': _format_locus(getattr(exc, 'locus', None)), 'error': describe_error(exc)}
            for stage, exc in report.errors.items()
        ]
        rows.extend(
            {'stage': 'dropped', 'kind': exc.kind.value, 'locus': _format_locus(locus), 'error': exc.message}
            for locus, exc in report.dropped
        )
        return pd.DataFrame(rows, columns=['stage', 'kind', 'locus', 'error'])


def _format_locus(locus):
    if locus is None:
        return ''
    return f"{locus[0]}:{locus[1]}"
