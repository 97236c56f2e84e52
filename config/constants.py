"""
Data Model Constants

Names and tags shared by the import pipeline, the consistency ledger and the
administrative tools. Changing any of these changes the on-disk data model,
so DATAMODEL_VERSION must be bumped alongside.
"""

# Version of the document layout written by this application
DATAMODEL_VERSION = 0.1

# Identity recorded in the application sentinel document
APPLICATION_NAME = 'VCFDB'

# Container holding the sentinel document and one metadata document per collection
METADATA_COLLECTION = '__METADATA__'
METADATA_SENTINEL_ID = '__METADATA__'

# Double underscores are reserved for internal containers (metadata, related collections)
RESERVED_SEPARATOR = '__'

# Merged document fields
ID_FIELD = '_id'
CHROM_FIELD = 'CHROM'
POS_FIELD = 'POS'
REF_FIELD = 'REF'
IDS_FIELD = 'IDs'
QUALS_FIELD = 'QUALs'
FILTERS_FIELD = 'FILTERs'
INFOS_FIELD = 'INFOs'
SAMPLES_FIELD = 'samples'

# Per-file parallel arrays, in document order
PER_FILE_FIELDS = [IDS_FIELD, QUALS_FIELD, FILTERS_FIELD, INFOS_FIELD]

# Sample entry field carrying a record's own REF when it differs from the document REF
REF_OVERRIDE_FIELD = '_RR_'

# Genotype call, stored as a list of allele strings
GENOTYPE_FIELD = 'GT'

# Collection metadata fields
META_CREATED = 'created'
META_LAST_EDIT = 'last_edit'
META_VCFS = 'vcfs'
META_HEADERS = 'headers'
META_SAMPLES = 'samples'
META_CONSISTENT = 'consistent'
META_REASON = 'last_inconsistency_reason'
META_SAMPLE_NAME = 'name'
META_SAMPLE_VCFID = 'vcfid'

# Inconsistency reason tags
REASON_NEW_IMPORT = 'NEW_IMPORT'
REASON_APPEND = 'APPEND'

# Header summary sections produced by the decoder
HEADER_SECTIONS = {
    'INFO': 'infos',
    'FILTER': 'filters',
    'FORMAT': 'formats',
    'CONTIG': 'contigs',
}
