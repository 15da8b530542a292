import pyarrow as pa


def create_account_schema():
    return pa.schema([
        ('address', pa.string()),
        ('lamports', pa.uint64()),
        ('owner', pa.string()),
        ('executable', pa.bool_()),
        ('rent_epoch', pa.uint64()),
        ('slot', pa.int64()),
        ('timestamp', pa.timestamp('us', tz='UTC')),
        ('data', pa.binary()),
        # bytes | text | json, how to decode 'data' on read
        ('data_encoding', pa.string()),
    ])


def create_transaction_schema():
    return pa.schema([
        ('signature', pa.string()),
        ('slot', pa.int64()),
        ('block_time', pa.int64()),
        ('accounts', pa.list_(pa.string())),
        ('success', pa.bool_()),
        ('fee', pa.uint64()),
        ('timestamp', pa.timestamp('us', tz='UTC')),
        ('program_id', pa.string()),
        # free-form processor payload, stored as JSON text
        ('data', pa.string()),
    ])
