# tritontube

A small video sharing site. Uploaded MP4 files are transcoded to MPEG-DASH
with `ffmpeg`, the resulting manifest and segments are stored by a content
service, and each video's id and upload time are kept by a metadata service.
The browser plays videos back through a DASH player.

`ffmpeg` must be available on `PATH` for uploads to work.

## Commands

- `tritontube-web` (`tritontube.app:main`): the web server. It serves the
  upload page, the watch pages and the video content.
- `tritontube-storage` (`tritontube.storage:main`): a storage node, a gRPC
  server that keeps files under a base directory. Several nodes form a
  cluster.
- `tritontube-admin` (`tritontube.admin:main`): adds, removes and lists the
  storage nodes of a running web server's cluster.

## Metadata services

| Type     | Option                                      |
|----------|---------------------------------------------|
| `sqlite` | path to the database file (a `file:` URI is opened as a URI) |
| `etcd`   | comma-separated list of etcd endpoints      |

The `etcd` service talks to etcd's HTTP/JSON gateway (`/v3/kv/put` and
`/v3/kv/range`). An endpoint without a scheme gets `http://`; endpoints are
tried in order until one answers. Each video is stored as a JSON document
under its id, and listing reads every key in the store.

## Content services

| Type | Option                                                                 |
|------|------------------------------------------------------------------------|
| `fs` | directory where video files are written, one sub-directory per video   |
| `nw` | comma-separated addresses: first the admin listen address, then nodes  |

With `nw`, each file (keyed `<video id>/<filename>`) is placed on a storage
node chosen by consistent hashing (`tritontube.hashring.HashRing`). When a
node is added or removed, files whose owner changes are copied to the new
owner and deleted from the old one; a file whose move fails stays where it
was and is not counted.

## Running

A single machine with local storage:

```
tritontube-web sqlite videos.db fs ./videos
```

The web server listens on `0.0.0.0:8080` by default; change it with
`--host` and `--port` (`-host` and `-port` work too). `-h` prints the usage.

A storage cluster:

```
tritontube-storage --port 8090 ./node1
tritontube-storage --port 8091 ./node2
tritontube-web sqlite videos.db nw localhost:8081,localhost:8090,localhost:8091
```

Each storage node listens on `localhost:8090` by default and takes its base
directory as its only argument; keys are stored as relative paths under it.

## Managing the cluster

The admin tool talks to the admin address given first in the `nw` option:

```
tritontube-admin list localhost:8081
tritontube-admin add localhost:8081 localhost:8092
tritontube-admin remove localhost:8081 localhost:8090
```

`add` and `remove` report how many files were migrated. Adding a node that
is already in the cluster, or removing one that is not, fails and the tool
exits with status 1.

## Endpoints

- `GET /` — watchlist and upload form
- `POST /upload` — multipart upload in the `file` field; the video id is the
  file name without its extension. An existing id gives `409`; success
  redirects to `/` with `303`.
- `GET /videos/<id>` — watch page
- `GET /content/<id>/<filename>` — manifest (`application/dash+xml`) and
  segments (`video/iso.segment`); other files get a type guessed from their
  name

## Library use

`create_app` in `tritontube.server` builds the Flask application from any
`VideoMetadataService` and `VideoContentService` (see `tritontube.models`),
such as `SQLiteVideoMetadataService` (`tritontube.sqlite`),
`EtcdVideoMetadataService` (`tritontube.etcd`), `FSVideoContentService`
(`tritontube.fs`) or `NetworkVideoContentService` (`tritontube.nw`).
Metadata services raise `VideoNotFoundError` for an unknown id.

`tritontube.rpc` holds `StorageClient` and `AdminClient`, and
`add_storage_service` / `add_admin_service` to expose a storage server or a
`NetworkVideoContentService` on a `grpc.Server`. `tritontube.templates`
renders the pages (`render_index`, `render_video`) and `to_json` produces
script-safe JSON.

## Limitations

- The storage and admin services exchange JSON-encoded messages over gRPC,
  so only the clients in `tritontube.rpc` can talk to them.
- A `nw` content service knows only the files written through it since it
  started; files on the nodes from earlier runs are not migrated when nodes
  change.
- Uploaded files and transcoder output are left in the system temporary
  directory.
- There is no authentication on any endpoint or on the admin service.